from src.auth.context import OperatorContext
from src.auth.dependencies import get_current_operator
from src.auth.jwt import create_operator_token, decode_operator_token

__all__ = [
    "OperatorContext",
    "get_current_operator",
    "create_operator_token",
    "decode_operator_token",
]
