"""
模型包初始化
在此处导入所有模型，确保 SQLAlchemy Base.metadata 能注册全部表。
init_db() 只需 import bizsite.models 即可触发所有模型注册。
"""

from bizsite.models.author import Author  # noqa: F401
from bizsite.models.category import Category  # noqa: F401
from bizsite.models.tag import Tag, post_tags  # noqa: F401
from bizsite.models.post import Post  # noqa: F401
from bizsite.models.user import User  # noqa: F401
