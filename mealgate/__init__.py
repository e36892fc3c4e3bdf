"""
MealGate: meal card and gate access decisions for hotel guests.
"""
