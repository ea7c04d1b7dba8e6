import logging

from database import Store
from repositories import Repositories

logger = logging.getLogger(__name__)

FEATURED_MIN_RATING = 4.5

SAMPLE_PRODUCTS = [
    {"name": 'MacBook Pro 16"', "description": "Apple MacBook Pro 16-inch with M2 Pro chip, 16GB RAM, 512GB SSD", "price": 2499.99, "category": "Electronics", "image_url": "https://images.unsplash.com/photo-1517336714731-489689fd1ca8?w=400", "stock": 10, "rating": 4.8, "review_count": 127},
    {"name": "iPhone 15 Pro", "description": "iPhone 15 Pro with A17 Pro chip, 128GB storage, Titanium design", "price": 999.99, "category": "Electronics", "image_url": "https://images.unsplash.com/photo-1592750475338-74b7b21085ab?w=400", "stock": 25, "rating": 4.7, "review_count": 89},
    {"name": "Nike Air Max 270", "description": "Comfortable running shoes with Air Max cushioning technology", "price": 149.99, "category": "Footwear", "image_url": "https://images.unsplash.com/photo-1542291026-7eec264c27ff?w=400", "stock": 50, "rating": 4.5, "review_count": 203},
    {"name": "Levi's 501 Jeans", "description": "Classic straight-fit jeans made from premium denim", "price": 89.99, "category": "Clothing", "image_url": "https://images.unsplash.com/photo-1542272604-787c3835535d?w=400", "stock": 75, "rating": 4.3, "review_count": 156},
    {"name": "The Great Gatsby", "description": "Classic novel by F. Scott Fitzgerald - Paperback edition", "price": 12.99, "category": "Books", "image_url": "https://images.unsplash.com/photo-1544947950-fa07a98d237f?w=400", "stock": 100, "rating": 4.6, "review_count": 342},
    {"name": 'Samsung 4K Smart TV 55"', "description": "55-inch 4K UHD Smart TV with HDR and built-in streaming apps", "price": 799.99, "category": "Electronics", "image_url": "https://images.unsplash.com/photo-1593359677879-a4bb92f829d1?w=400", "stock": 15, "rating": 4.4, "review_count": 67},
    {"name": "Adidas Ultraboost 22", "description": "Premium running shoes with Boost midsole technology", "price": 189.99, "category": "Footwear", "image_url": "https://images.unsplash.com/photo-1606107557195-0e29a4b5b4aa?w=400", "stock": 40, "rating": 4.6, "review_count": 178},
    {"name": "Coffee Table Book: Nature Photography", "description": "Stunning collection of nature photographs from around the world", "price": 39.99, "category": "Books", "image_url": "https://images.unsplash.com/photo-1481627834876-b7833e8f5570?w=400", "stock": 30, "rating": 4.8, "review_count": 45},
]

DEMO_USERS = [
    {"email": "john@example.com", "password": "Ecomm@123", "first_name": "John", "last_name": "Doe"},
    {"email": "jane@example.com", "password": "Ecomm@123", "first_name": "Jane", "last_name": "Smith"},
]


def seed_store(store: Store, users: bool = True) -> Repositories:
    repos = Repositories(store)

    if not store.get_documents("product"):
        for p in SAMPLE_PRODUCTS:
            repos.products.create({**p, "featured": p["rating"] >= FEATURED_MIN_RATING})

    if users:
        for u in DEMO_USERS:
            if not store.find_one("user", {"email": u["email"]}):
                repos.users.create(**u)

    logger.info("Seeded %d products and %d users", len(store["product"]), len(store["user"]))
    return repos
