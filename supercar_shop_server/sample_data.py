"""Demo catalog loaded into an empty local database. Prices are in VND."""

CATEGORIES = [
    {"id": 1, "name": "Ferrari", "description": "Ferrari supercars"},
    {"id": 2, "name": "Lamborghini", "description": "Lamborghini supercars"},
    {"id": 3, "name": "Bugatti", "description": "Bugatti hypercars"},
    {"id": 4, "name": "McLaren", "description": "McLaren supercars, built on F1 technology"},
    {"id": 5, "name": "Porsche", "description": "Porsche sports cars"},
    {"id": 6, "name": "Aston Martin", "description": "Aston Martin grand tourers"},
]


def _car(name, price, category_id, stock, rating, review_count, featured=0, new=0):
    return {
        "name": name,
        "price": price,
        "category_id": category_id,
        "stock_quantity": stock,
        "rating": rating,
        "review_count": review_count,
        "is_featured": featured,
        "is_new": new,
    }


PRODUCTS = [
    _car("Ferrari 488 GTB", 12_800_000_000, 1, 2, 4.9, 15, featured=1, new=1),
    _car("Ferrari SF90 Stradale", 28_500_000_000, 1, 1, 5.0, 8, featured=1, new=1),
    _car("Ferrari Portofino", 9_800_000_000, 1, 3, 4.8, 12),
    _car("Lamborghini Huracán EVO", 11_500_000_000, 2, 2, 4.9, 18, featured=1, new=1),
    _car("Lamborghini Aventador SVJ", 18_500_000_000, 2, 1, 5.0, 10, featured=1),
    _car("Lamborghini Urus", 14_200_000_000, 2, 4, 4.8, 25, featured=1),
    _car("Bugatti Chiron", 45_000_000_000, 3, 1, 5.0, 3, featured=1),
    _car("Bugatti Veyron", 32_000_000_000, 3, 1, 4.9, 5),
    _car("McLaren 720S", 13_800_000_000, 4, 2, 4.9, 14, featured=1, new=1),
    _car("McLaren P1", 28_000_000_000, 4, 1, 5.0, 6, featured=1),
    _car("McLaren Artura", 12_500_000_000, 4, 3, 4.8, 11, new=1),
    _car("Porsche 911 Turbo S", 8_800_000_000, 5, 5, 4.9, 32, featured=1, new=1),
    _car("Porsche 718 Cayman GT4", 7_200_000_000, 5, 4, 4.8, 28),
    _car("Porsche Taycan Turbo", 9_500_000_000, 5, 3, 4.7, 19, featured=1, new=1),
    _car("Aston Martin DB11", 12_500_000_000, 6, 2, 4.8, 16, featured=1),
    _car("Aston Martin Vantage", 9_800_000_000, 6, 3, 4.7, 22, new=1),
    _car("Aston Martin DBS Superleggera", 15_800_000_000, 6, 1, 4.9, 12, featured=1),
]

USERS = [
    {"email": "admin@shopapp.com", "password": "admin123", "full_name": "Admin User"},
    {"email": "user@shopapp.com", "password": "user123", "full_name": "Test User"},
]

SAMPLE_DATA = {"categories": CATEGORIES, "products": PRODUCTS, "users": USERS}
