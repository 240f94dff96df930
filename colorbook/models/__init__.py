from colorbook.models.image import Image, image_tags
from colorbook.models.category import Category
from colorbook.models.tag import Tag
from colorbook.models.post import Post
