"""
End-to-end movie store scenarios against an in-process DynamoDB (moto).

Item order returned by scans is backend-defined, so these tests compare
sets of titles unless the operation itself guarantees an order.
"""

import math
from unittest.mock import Mock

import pytest

from dynamodb_templates import (
    ConditionalCheckFailed,
    DynamoDBConfig,
    ValidationFailure,
    ValidationResult,
    batch_write,
    load_store,
    make_records_counter,
)


def movie(number, year=2013):
    return {'year': year, 'title': f'Movie {number:03d}', 'info': {'rating': number % 10, 'plot': f'Plot {number}'}}


def key_of(item):
    return {'year': item['year'], 'title': item['title']}


class TestSingleItemOperations:
    """put / get / delete / update."""

    def test_put_then_get(self, movie_store):
        item = {'year': 2013, 'title': 'Superman', 'info': {'rating': 6.5, 'genres': ['Action', 'Sci-Fi']}}

        assert movie_store.addMovie({'movie': item}) == item
        assert movie_store.getMovie({'key': {'year': 2013, 'title': 'Superman'}}) == item

    def test_get_missing_item(self, movie_store):
        assert movie_store.getMovie({'key': {'year': 1900, 'title': 'Nothing'}}) is None

    def test_delete_then_get(self, movie_store):
        movie_store.addMovie({'movie': {'year': 2013, 'title': 'Superman'}})

        assert movie_store.deleteMovie({'key': {'year': 2013, 'title': 'Superman'}}) is None
        assert movie_store.getMovie({'key': {'year': 2013, 'title': 'Superman'}}) is None

    def test_composite_placeholder(self, movie_store):
        parts = {'year': 1980, 'title': 'Star Wars', 'part': 5, 'subtitle': 'The Empire Strikes Back'}

        movie_store.addMovieWithParts(dict(parts, info={'director': 'Kershner'}))
        stored = movie_store.getMovie({'key': {'year': 1980, 'title': 'Star Wars:5:The Empire Strikes Back'}})

        assert stored == {
            'year': 1980,
            'title': 'Star Wars:5:The Empire Strikes Back',
            'info': {'director': 'Kershner'}
        }
        assert movie_store.getMovieWithParts(parts) == stored

    def test_update_adds_gross(self, movie_store):
        key = {'year': 2013, 'title': 'Superman'}
        movie_store.addMovie({'movie': dict(key, gross=100)})

        updated = movie_store.addGross({'key': key, 'gross': 250})

        assert updated == dict(key, gross=350)
        assert movie_store.getMovie({'key': key})['gross'] == 350

    def test_conditional_update_failure_leaves_item(self, movie_store):
        key = {'year': 2013, 'title': 'Superman'}
        movie_store.addMovie({'movie': dict(key, rating=6)})

        with pytest.raises(ConditionalCheckFailed) as exc_info:
            movie_store.setRatingIfUnrated({'key': key, 'rating': 9})

        assert exc_info.value.code == 'ConditionalCheckFailedException'
        assert movie_store.getMovie({'key': key}) == dict(key, rating=6)

    def test_conditional_update_error_via_callback(self, movie_store):
        key = {'year': 2013, 'title': 'Superman'}
        movie_store.addMovie({'movie': dict(key, rating=6)})
        callback = Mock()

        movie_store.setRatingIfUnrated({'key': key, 'rating': 9}, callback)

        callback.assert_called_once()
        error, result = callback.call_args.args
        assert error.code == 'ConditionalCheckFailedException'
        assert result is None

    def test_conditional_update_succeeds_once(self, movie_store):
        key = {'year': 2013, 'title': 'Superman'}
        movie_store.addMovie({'movie': key})

        assert movie_store.setRatingIfUnrated({'key': key, 'rating': 7}) is None
        assert movie_store.getMovie({'key': key})['rating'] == 7


class TestBatchOperations:
    """Batch writes and gets across chunk boundaries."""

    def test_batch_write_beyond_limit(self, movie_store):
        movies = [movie(n) for n in range(60)]

        assert movie_store.addMovies({'movies': movies}) is None

        stored = movie_store.allMovies({'options': {'pages': 'all'}})
        assert len(stored) == 60
        assert {item['title'] for item in stored} == {item['title'] for item in movies}

    def test_batch_delete(self, movie_store):
        movies = [movie(n) for n in range(30)]
        movie_store.addMovies({'movies': movies})

        movie_store.removeMovies({'keys': [key_of(item) for item in movies[:27]]})

        remaining = movie_store.allMovies({'options': {'pages': 'all'}})
        assert {item['title'] for item in remaining} == {'Movie 027', 'Movie 028', 'Movie 029'}

    def test_batch_get_beyond_limit_keeps_key_order(self, movie_store):
        movies = [movie(n, year=2000 + n % 4) for n in range(150)]
        movie_store.addMovies({'movies': movies})
        keys = [key_of(item) for item in reversed(movies)]

        result = movie_store.getMovies({'keys': keys})

        assert list(result) == ['Movies']
        assert result['Movies'] == list(reversed(movies))

    def test_batch_get_skips_missing_keys(self, movie_store):
        movies = [movie(n) for n in range(3)]
        movie_store.addMovies({'movies': movies})
        keys = [key_of(movies[2]), {'year': 1900, 'title': 'Missing'}, key_of(movies[0])]

        result = movie_store.getMovies({'keys': keys})

        assert result == {'Movies': [movies[2], movies[0]]}

    def test_batch_get_float_key_finds_item(self, movie_store):
        movie_store.addMovie({'movie': {'year': 2013, 'title': 'Superman'}})
        key = {'year': 2013.0, 'title': 'Superman'}

        assert movie_store.getMovie({'key': key}) == {'year': 2013, 'title': 'Superman'}
        assert movie_store.getMovies({'keys': [key]}) == {'Movies': [{'year': 2013, 'title': 'Superman'}]}

    def test_batch_across_tables(self, mock_dynamodb_client, movies_table, mock_config):
        mock_dynamodb_client.create_table(
            TableName='Directors',
            KeySchema=[{'AttributeName': 'name', 'KeyType': 'HASH'}],
            AttributeDefinitions=[{'AttributeName': 'name', 'AttributeType': 'S'}],
            BillingMode='PAY_PER_REQUEST'
        )
        store = load_store({
            'table_name': 'Movies',
            'operations': {
                'addAll': {
                    '_type': 'batch_write',
                    'RequestItems': {
                        'Movies': batch_write(put='{{movies}}'),
                        'Directors': batch_write(put='{{directors}}'),
                    }
                },
                'getAll': {
                    '_type': 'batch_get',
                    'RequestItems': {
                        'Movies': {'Keys': '{{movie_keys}}'},
                        'Directors': {'Keys': '{{director_keys}}', 'ProjectionExpression': '#n',
                                      'ExpressionAttributeNames': {'#n': 'name'}},
                    }
                },
            }
        }, client=mock_dynamodb_client, config=mock_config)
        movies = [movie(n) for n in range(20)]
        directors = [{'name': f'Director {n}', 'born': 1950 + n} for n in range(10)]

        store.addAll({'movies': movies, 'directors': directors})
        result = store.getAll({
            'movie_keys': [key_of(item) for item in movies],
            'director_keys': [{'name': item['name']} for item in directors],
        })

        assert result['Movies'] == movies
        assert result['Directors'] == [{'name': item['name']} for item in directors]


class TestQueryAndScan:
    """Paged reads."""

    @pytest.fixture
    def seven_movies(self, movie_store):
        movies = [movie(n) for n in range(7)]
        movie_store.addMovies({'movies': movies + [movie(100, year=1999)]})
        return movies

    def test_query_by_year(self, movie_store, seven_movies):
        result = movie_store.moviesByYear({'year': 2013})

        assert [item['title'] for item in result] == [item['title'] for item in seven_movies]

    def test_query_pages_in_key_order(self, movie_store, seven_movies):
        pages = []

        def on_page(items, proceed):
            pages.append([item['title'] for item in items])
            proceed()

        movie_store.moviesByYear({'year': 2013, 'limit': 3, 'options': {'pages': 'all', 'page_callback': on_page}})

        assert pages == [
            ['Movie 000', 'Movie 001', 'Movie 002'],
            ['Movie 003', 'Movie 004', 'Movie 005'],
            ['Movie 006'],
        ]

    def test_scan_first_page_only(self, movie_store, seven_movies):
        page = movie_store.allMovies({'limit': 3, 'options': {'raw': True}})

        assert page['Count'] == 3
        assert len(page['Items']) == 3
        assert set(page['LastEvaluatedKey']) == {'year', 'title'}

    def test_scan_visits_every_item_once(self, movie_store, seven_movies):
        pages = []

        def on_page(items, proceed):
            pages.append(items)
            proceed()

        movie_store.allMovies({'limit': 3, 'options': {'pages': 'all', 'pageCallback': on_page}})

        assert len(pages) == math.ceil(8 / 3)
        titles = [item['title'] for items in pages for item in items]
        assert sorted(titles) == sorted(item['title'] for item in seven_movies + [movie(100)])

    def test_scan_reducer(self, movie_store, seven_movies):
        total = movie_store.allMovies({
            'limit': 3,
            'options': {'page_reduce': lambda acc, items: acc + len(items), 'page_reduce_initial': 0}
        })

        assert total == 8

    def test_records_counter(self, movie_store, seven_movies):
        assert movie_store.moviesByYear(make_records_counter({'year': 2013, 'limit': 2})) == 7

    def test_page_halts_without_proceed(self, movie_store, seven_movies):
        on_page = Mock()

        result = movie_store.allMovies({'limit': 3, 'options': {'pages': 'all', 'page_callback': on_page}})

        assert result is None
        on_page.assert_called_once()


class TestValidators:
    """Validator hook against the real backend."""

    @pytest.fixture
    def guarded_store(self, movies_table, mock_dynamodb_client, mock_config):
        def require_title(model):
            if not model.get('movie', {}).get('title'):
                return ValidationResult(failed=True, message='movie title is required')
            return ValidationResult()

        return load_store({
            'table_name': movies_table,
            'operations': {
                'addMovie': {'_type': 'put', 'Item': '{{movie}}', '_validator': require_title},
                'getMovie': {'_type': 'get', 'Key': '{{key}}'},
            }
        }, client=mock_dynamodb_client, config=mock_config)

    def test_valid_payload_written(self, guarded_store):
        guarded_store.addMovie({'movie': {'year': 2013, 'title': 'Superman'}})

        assert guarded_store.getMovie({'key': {'year': 2013, 'title': 'Superman'}}) is not None

    def test_veto_blocks_write(self, guarded_store, mock_dynamodb_client):
        with pytest.raises(ValidationFailure, match="movie title is required") as exc_info:
            guarded_store.addMovie({'movie': {'year': 2013, 'title': ''}})

        assert exc_info.value.result.failed is True
        assert mock_dynamodb_client.scan(TableName='Movies')['Count'] == 0

    def test_veto_delivered_to_callback(self, guarded_store):
        callback = Mock()

        guarded_store.addMovie({'movie': {'year': 2013}}, callback)

        callback.assert_called_once_with(ValidationResult(failed=True, message='movie title is required'), None)


class TestStoreWiring:
    """Table name resolvers and client injection."""

    def test_callable_table_name(self, mock_dynamodb_client, mock_config):
        for suffix in ('eu', 'us'):
            mock_dynamodb_client.create_table(
                TableName=f'Movies_{suffix}',
                KeySchema=[{'AttributeName': 'title', 'KeyType': 'HASH'}],
                AttributeDefinitions=[{'AttributeName': 'title', 'AttributeType': 'S'}],
                BillingMode='PAY_PER_REQUEST'
            )
        store = load_store({
            'table_name': lambda model: f"Movies_{model['region']}",
            'operations': {
                'addMovie': {'_type': 'put', 'Item': {'title': '{{title}}'}},
                'getMovie': {'_type': 'get', 'Key': {'title': '{{title}}'}},
            }
        }, client=mock_dynamodb_client, config=mock_config)

        store.addMovie({'region': 'eu', 'title': 'Amelie'})

        assert store.getMovie({'region': 'eu', 'title': 'Amelie'}) == {'title': 'Amelie'}
        assert store.getMovie({'region': 'us', 'title': 'Amelie'}) is None

    def test_client_created_from_config(self, movies_table):
        config = DynamoDBConfig(aws_access_key_id='testing', aws_secret_access_key='testing', region_name='us-east-1',
                                endpoint_url=None)
        store = load_store({
            'table_name': movies_table,
            'operations': {'addMovie': {'_type': 'put', 'Item': '{{movie}}'}, 'getMovie': {'_type': 'get', 'Key': '{{key}}'}}
        }, config=config)

        store.addMovie({'movie': {'year': 2013, 'title': 'Superman'}})

        assert store.getMovie({'key': {'year': 2013, 'title': 'Superman'}}) == {'year': 2013, 'title': 'Superman'}

    def test_injected_client_shared(self, movie_store, mock_dynamodb_client):
        movie_store.addMovie({'movie': {'year': 2013, 'title': 'Superman'}})

        response = mock_dynamodb_client.get_item(
            TableName='Movies', Key={'year': {'N': '2013'}, 'title': {'S': 'Superman'}}
        )
        assert response['Item'] == {'year': {'N': '2013'}, 'title': {'S': 'Superman'}}

