"""
Operations Layer

This package provides data access operations that compose database queries
for the service layer. Every operation accepts an optional session so that a
service can run several of them inside one transaction.

Architecture:
- Database layer: Engine, sessions and schema
- Operations layer: Row-level reads and writes
- Service layer: Business rules, validation and transactions
- Command layer: Discord integration and user interface

Each operations module focuses on a specific domain:
- AttendanceOperations: Per-gameday member rows and custom game values
- MemberOperations: Club member ordering and round-zero seeds
"""

from .attendance_operations import AttendanceOperations
from .member_operations import MemberOperations

__all__ = ['AttendanceOperations', 'MemberOperations']
