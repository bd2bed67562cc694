from .config import DynamoDBConfig, PlaceholderPolicy

__all__ = ["DynamoDBConfig", "PlaceholderPolicy"]
