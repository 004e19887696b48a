# Repositories package init
"""
Widget API Backend: Persistence Layer
========================================

What:  SQL queries and mutations, one repository per table.
Why:   Keeps SQLAlchemy statements out of the service layer so ownership and
       version predicates live in exactly one place.

Repository Inventory:
    - WidgetRepository: owner-scoped reads, counts, insert, compare-and-set
      update, delete
"""
