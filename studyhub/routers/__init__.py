"""
API routers - every endpoint is mounted under /api
"""
from studyhub.routers import users
from studyhub.routers import mains
from studyhub.routers import classes
from studyhub.routers import lessons
from studyhub.routers import search
from studyhub.routers import progress

__all__ = [
    "users",
    "mains",
    "classes",
    "lessons",
    "search",
    "progress"
]
