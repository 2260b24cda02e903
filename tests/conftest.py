"""Pytest configuration shared across the suite."""

import pytest

from fakes import InMemoryTableStore, make_settings


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def employee_table() -> InMemoryTableStore:
    return InMemoryTableStore("EmployeeMap")


@pytest.fixture
def ledger_table() -> InMemoryTableStore:
    return InMemoryTableStore("NotifyState")
