"""
API Routes Package
"""
from . import (
    dashboard,
    health,
    webhooks,
)
