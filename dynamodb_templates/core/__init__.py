"""
Core engine components.

This module contains the layers every bound operation runs through:
- Type Marshaller: native values <-> DynamoDB attribute values
- Template Compiler & Substitution Engine
- Validator Hook
- DynamoDBGateway: thin wrapper over the low-level boto3 client
- PagingController: multi-page Query/Scan traversal
- OperationExecutor: per-kind strategies, batch chunking and retry
"""

# Import order matters: templates must load before anything touching models
from .marshaller import marshal, marshal_item, unmarshal, unmarshal_item
from .templates import RequestTemplate, compile_request_template
from .validation import is_failed, pure_model, run_validator
from .gateway import DynamoDBGateway, create_dynamodb_client, map_dynamodb_error
from .paging import PagingController
from .executor import OperationExecutor

__all__ = [
    "marshal",
    "marshal_item",
    "unmarshal",
    "unmarshal_item",
    "RequestTemplate",
    "compile_request_template",
    "is_failed",
    "pure_model",
    "run_validator",
    "DynamoDBGateway",
    "create_dynamodb_client",
    "map_dynamodb_error",
    "PagingController",
    "OperationExecutor",
]
