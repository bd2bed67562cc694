"""
Test configuration and fixtures for dynamodb-templates.

Provides a moto-backed Movies table and a store bound to it.
"""

from unittest.mock import Mock

import boto3
import pytest
from moto import mock_aws

from dynamodb_templates import DynamoDBConfig, batch_write, load_store

TABLE_NAME = 'Movies'


@pytest.fixture(autouse=True)
def aws_credentials(monkeypatch):
    """Fake credentials so no test can reach a real AWS account."""
    monkeypatch.setenv('AWS_ACCESS_KEY_ID', 'testing')
    monkeypatch.setenv('AWS_SECRET_ACCESS_KEY', 'testing')
    monkeypatch.setenv('AWS_DEFAULT_REGION', 'us-east-1')


@pytest.fixture
def mock_config():
    """DynamoDB configuration for mocked testing."""
    return DynamoDBConfig(
        aws_access_key_id="test_key",
        aws_secret_access_key="test_secret",
        region_name="us-east-1",
        endpoint_url=None,  # Use default AWS endpoint for moto
        retry_base_delay=0,
        retry_max_delay=0
    )


@pytest.fixture
def mock_dynamodb_client():
    """Low-level DynamoDB client backed by moto."""
    with mock_aws():
        yield boto3.client('dynamodb', region_name='us-east-1')


@pytest.fixture
def movies_table(mock_dynamodb_client):
    """Create the Movies table (year HASH, title RANGE)."""
    mock_dynamodb_client.create_table(
        TableName=TABLE_NAME,
        KeySchema=[
            {'AttributeName': 'year', 'KeyType': 'HASH'},
            {'AttributeName': 'title', 'KeyType': 'RANGE'}
        ],
        AttributeDefinitions=[
            {'AttributeName': 'year', 'AttributeType': 'N'},
            {'AttributeName': 'title', 'AttributeType': 'S'}
        ],
        BillingMode='PAY_PER_REQUEST'
    )
    return TABLE_NAME


def movie_store_description(table_name=TABLE_NAME):
    """Store description exercising every operation kind."""
    return {
        'table_name': table_name,
        'operations': {
            'addMovie': {
                '_type': 'put',
                'Item': '{{movie}}'
            },
            'getMovie': {
                '_type': 'get',
                'Key': '{{key}}'
            },
            'deleteMovie': {
                '_type': 'delete',
                'Key': '{{key}}'
            },
            'addMovieWithParts': {
                '_type': 'put',
                'Item': {
                    'year': '{{year}}',
                    'title': '{{title}}:{{part}}:{{subtitle}}',
                    'info': '{{info}}'
                }
            },
            'getMovieWithParts': {
                '_type': 'get',
                'Key': {
                    'year': '{{year}}',
                    'title': '{{title}}:{{part}}:{{subtitle}}'
                }
            },
            'addGross': {
                '_type': 'update',
                'Key': '{{key}}',
                'UpdateExpression': 'add gross :gross',
                'ExpressionAttributeValues': {':gross': '{{gross}}'},
                'ReturnValues': 'ALL_NEW'
            },
            'setRatingIfUnrated': {
                '_type': 'update',
                'Key': '{{key}}',
                'UpdateExpression': 'set rating = :rating',
                'ConditionExpression': 'attribute_not_exists(rating)',
                'ExpressionAttributeValues': {':rating': '{{rating}}'}
            },
            'moviesByYear': {
                '_type': 'query',
                'KeyConditionExpression': '#year = :year',
                'ExpressionAttributeNames': {'#year': 'year'},
                'ExpressionAttributeValues': {':year': '{{year}}'},
                'Limit': '{{limit}}'
            },
            'allMovies': {
                '_type': 'scan',
                'Limit': '{{limit}}'
            },
            'addMovies': {
                '_type': 'batch_write',
                'RequestItems': {table_name: batch_write(put='{{movies}}')}
            },
            'removeMovies': {
                '_type': 'batchWrite',
                'RequestItems': {table_name: batch_write(delete='{{keys}}')}
            },
            'getMovies': {
                '_type': 'batch_get',
                'RequestItems': {table_name: {'Keys': '{{keys}}'}}
            },
        }
    }


@pytest.fixture
def movie_store(movies_table, mock_dynamodb_client, mock_config):
    """Store bound to the moto Movies table."""
    return load_store(movie_store_description(), client=mock_dynamodb_client, config=mock_config)


@pytest.fixture
def client_stub():
    """Mock low-level client for tests that script backend responses."""
    return Mock(name='dynamodb_client')
