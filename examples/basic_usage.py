#!/usr/bin/env python3
"""
Basic usage examples for dynamodb-templates.

This example demonstrates:
1. Setting up configuration
2. Describing a store with request templates
3. Single-item reads and writes
4. Batch writes and gets beyond the per-call limits
5. Conditional updates and error handling
6. Paging through query and scan results
"""

import logging

from dynamodb_templates import (
    ConditionalCheckFailed,
    DynamoDBConfig,
    ValidationFailure,
    ValidationResult,
    batch_write,
    load_store,
    make_records_counter,
)


def require_title(model):
    """Reject movies without a title before anything reaches DynamoDB."""
    if not model.get('movie', {}).get('title'):
        return ValidationResult(failed=True, message="movie title is required")
    return None


MOVIES_STORE = {
    'table_name': 'Movies',
    'operations': {
        'addMovie': {
            '_type': 'put',
            '_validator': require_title,
            'Item': '{{movie}}'
        },
        'getMovie': {
            '_type': 'get',
            'Key': {'year': '{{year}}', 'title': '{{title}}'}
        },
        'addGross': {
            '_type': 'update',
            'Key': {'year': '{{year}}', 'title': '{{title}}'},
            'UpdateExpression': 'add gross :gross',
            'ExpressionAttributeValues': {':gross': '{{gross}}'},
            'ReturnValues': 'ALL_NEW'
        },
        'rateOnce': {
            '_type': 'update',
            'Key': {'year': '{{year}}', 'title': '{{title}}'},
            'UpdateExpression': 'set rating = :rating',
            'ConditionExpression': 'attribute_not_exists(rating)',
            'ExpressionAttributeValues': {':rating': '{{rating}}'}
        },
        'addMovies': {
            '_type': 'batch_write',
            'RequestItems': {'Movies': batch_write(put='{{movies}}')}
        },
        'getMovies': {
            '_type': 'batch_get',
            'RequestItems': {'Movies': {'Keys': '{{keys}}'}}
        },
        'moviesByYear': {
            '_type': 'query',
            '_page_limit': 50,
            'KeyConditionExpression': '#year = :year',
            'ExpressionAttributeNames': {'#year': 'year'},
            'ExpressionAttributeValues': {':year': '{{year}}'},
            'Limit': '{{limit}}'
        },
    }
}


def main():
    """Demonstrate basic usage of a templated movie store."""
    logging.basicConfig(level=logging.INFO)

    # 1. Configure DynamoDB connection
    print("1. Setting up DynamoDB configuration...")
    config = DynamoDBConfig.from_env()  # Uses environment variables

    # For local development, you might use:
    # config = DynamoDBConfig.for_local_development()

    # 2. Compile the store description once
    print("2. Loading the movie store...")
    store = load_store(MOVIES_STORE, config=config)
    print(f"   Operations: {', '.join(store.operation_names)}")

    # 3. Single-item operations
    print("3. Writing and reading a movie...")
    store.addMovie({'movie': {'year': 2013, 'title': 'Superman', 'info': {'rating': 6.5}}})
    print(f"   Stored: {store.getMovie({'year': 2013, 'title': 'Superman'})}")

    try:
        store.addMovie({'movie': {'year': 2013}})
    except ValidationFailure as e:
        print(f"   Rejected: {e.result.message}")

    # 4. Batch operations are chunked transparently
    print("4. Batch writing 60 movies...")
    movies = [{'year': 2014, 'title': f'Movie {n:03d}'} for n in range(60)]
    store.addMovies({'movies': movies})
    found = store.getMovies({'keys': movies})
    print(f"   Read back {len(found['Movies'])} movies in request order")

    # 5. Updates and conditional updates
    print("5. Updating...")
    updated = store.addGross({'year': 2013, 'title': 'Superman', 'gross': 100})
    print(f"   Gross now {updated['gross']}")

    store.rateOnce({'year': 2013, 'title': 'Superman', 'rating': 7})
    try:
        store.rateOnce({'year': 2013, 'title': 'Superman', 'rating': 9})
    except ConditionalCheckFailed as e:
        print(f"   Second rating refused ({e.code})")

    # Callback style delivers errors instead of raising
    def on_result(error, result):
        print(f"   callback: error={error!r} result={result!r}")

    store.getMovie({'year': 2013, 'title': 'Superman'}, on_result)

    # 6. Paging
    print("6. Paging through 2014...")

    def on_page(items, proceed):
        print(f"   page with {len(items)} movies")
        proceed()

    store.moviesByYear({'year': 2014, 'limit': 25, 'options': {'pages': 'all', 'page_callback': on_page}})

    everything = store.moviesByYear({'year': 2014, 'options': {'pages': 'all'}})
    print(f"   {len(everything)} movies in total")

    count = store.moviesByYear(make_records_counter({'year': 2014, 'limit': 10}))
    print(f"   counted {count} movies across pages")


if __name__ == "__main__":
    main()
