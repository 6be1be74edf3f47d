"""
Fleet application.

Vehicles, their ownership classification, and the expenses that accrue
against them until a settlement liquidates them.

Key components:
    - Vehicle: Plate, fleet classification and owner
    - OperationalExpense / ExpenseBill: Fuel, tolls, repairs, fines, parking
    - PreoperationalInspection / InspectionReport: Inspection findings with a value
    - ExpenseAggregator: Unliquidated expenses per vehicle

Usage:
    from fleet.models import Vehicle, OperationalExpense
    from fleet.services import ExpenseAggregator
"""
