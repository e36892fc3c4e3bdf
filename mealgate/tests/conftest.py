"""
Test configuration
Fixtures for an in-memory database, seeded venue data and the API client.
"""

from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from ..app import create_app
from ..core.database import DatabaseManager
from ..models.venue import GateType
from ..services.card_service import CardService, get_card_service
from ..services.scan_record_service import ScanRecordService, get_scan_record_service
from ..services.scan_service import ScanService, get_scan_service
from .utils.db_helper import DatabaseHelper

# Monday lunch time, inside every seeded card's validity range
LUNCH_TIME = datetime(2024, 1, 15, 12, 30)


@pytest.fixture
def test_db():
    """In-memory database with the full schema"""
    db_manager = DatabaseManager(":memory:")
    db_manager.init_database()
    yield db_manager
    db_manager.close()


@pytest.fixture
def db_helper(test_db):
    return DatabaseHelper(test_db)


@pytest.fixture
def venue(db_helper):
    """Two restaurants with breakfast/lunch/dinner, a main gate and a restaurant gate linked to the first"""
    main_gate = db_helper.create_gate(GateType.MAIN.value, "Main Gate")
    restaurant_gate = db_helper.create_gate(GateType.RESTAURANT.value, "Restaurant 1 Gate")
    r1 = db_helper.create_restaurant("Restaurant 1", "المطعم 1", gate_id=restaurant_gate.id)
    r2 = db_helper.create_restaurant("Restaurant 2", "المطعم 2")
    meals = {}
    for restaurant in (r1, r2):
        meals[restaurant.id] = {
            "breakfast": db_helper.create_meal_time(restaurant.id, "Breakfast", "06:00", "10:00", "الإفطار"),
            "lunch": db_helper.create_meal_time(restaurant.id, "Lunch", "12:00", "15:00", "الغداء"),
            "dinner": db_helper.create_meal_time(restaurant.id, "Dinner", "18:00", "22:00", "العشاء"),
        }
    return {
        "main_gate": main_gate,
        "restaurant_gate": restaurant_gate,
        "r1": r1,
        "r2": r2,
        "meals": meals,
    }


@pytest.fixture
def guest_card(db_helper, venue):
    """Active guest of restaurant 1 with an unlimited QR card"""
    guest = db_helper.create_guest(venue["r1"].id)
    card = db_helper.create_card(guest.id)
    return guest, card


@pytest.fixture
def scan_service(test_db):
    return ScanService(test_db, clock=lambda: LUNCH_TIME)


@pytest.fixture
def app_instance(test_db):
    """Application wired to the test database"""
    app = create_app()
    app.dependency_overrides[get_scan_service] = lambda: ScanService(test_db, clock=lambda: LUNCH_TIME)
    app.dependency_overrides[get_scan_record_service] = lambda: ScanRecordService(test_db)
    app.dependency_overrides[get_card_service] = lambda: CardService(test_db)
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app_instance):
    return TestClient(app_instance)
