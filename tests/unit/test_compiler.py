"""Unit tests for the row factory compiler."""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Mapping
from dataclasses import dataclass
from enum import IntEnum

import pytest
from pydantic import BaseModel

from row_forge.core.exceptions import ConfigurationError, ConversionError
from row_forge.core.reader import ColumnInfo
from row_forge.mapping.compiler import build_factory


class EmployeeCategory(IntEnum):
    REGULAR = 1
    LEAD = 2
    MANAGER = 3


@dataclass
class Employee:
    id: int = 0
    name: str = ""
    department_id: int = 7


@dataclass
class ExtendedEmployee:
    id: int = 0
    name: str = ""
    email: str | None = "unset"
    score: float | None = 1.0
    category: EmployeeCategory = EmployeeCategory.REGULAR


class EmployeeModel(BaseModel):
    id: int = 0
    name: str = ""


class PlainEmployee:
    def __init__(self) -> None:
        self.id = 0
        self.name = ""


@dataclass(frozen=True)
class FrozenEmployee:
    id: int = 0


EMPLOYEE_COLUMNS = [ColumnInfo("Id", int), ColumnInfo("Name", str), ColumnInfo("DepartmentId", int)]


class TestBuildFactory:
    def test_maps_every_matching_column(self) -> None:
        factory = build_factory(Employee, EMPLOYEE_COLUMNS)
        assert factory((1, "Employee1", 1)) == Employee(id=1, name="Employee1", department_id=1)

    def test_each_call_returns_new_instance(self) -> None:
        factory = build_factory(Employee, EMPLOYEE_COLUMNS)
        first = factory((1, "A", 1))
        second = factory((1, "A", 1))
        assert first == second
        assert first is not second

    def test_extra_columns_are_ignored(self) -> None:
        columns = [*EMPLOYEE_COLUMNS, ColumnInfo("Email", str)]
        factory = build_factory(Employee, columns)
        assert factory((1, "A", 2, "a@example.com")) == Employee(1, "A", 2)

    def test_missing_columns_keep_defaults(self) -> None:
        factory = build_factory(Employee, [ColumnInfo("Name", str)])
        assert factory(("Only name",)) == Employee(id=0, name="Only name", department_id=7)

    def test_null_into_value_field_keeps_default(self) -> None:
        factory = build_factory(Employee, EMPLOYEE_COLUMNS)
        result = factory((1, "A", None))
        assert result.department_id == 7

    def test_null_into_reference_field_assigns_none(self) -> None:
        factory = build_factory(Employee, EMPLOYEE_COLUMNS)
        assert factory((1, None, 1)).name is None

    def test_null_into_optional_value_field_assigns_none(self) -> None:
        factory = build_factory(ExtendedEmployee, [ColumnInfo("Score", float)])
        assert factory((None,)).score is None

    def test_non_null_column_maps_values(self) -> None:
        columns = [ColumnInfo("Id", int, nullable=False), ColumnInfo("Name", str, nullable=False)]
        factory = build_factory(Employee, columns)
        assert factory((5, "B")) == Employee(5, "B", 7)

    def test_converts_mismatched_column_type(self) -> None:
        factory = build_factory(Employee, [ColumnInfo("Id", str), ColumnInfo("Name", int)])
        assert factory(("5", 42)) == Employee(id=5, name="42")

    def test_untyped_column_uses_generic_path(self) -> None:
        factory = build_factory(Employee, [ColumnInfo("Id", object)])
        assert factory((3,)).id == 3
        assert factory(("4",)).id == 4

    def test_enum_from_string_column(self) -> None:
        factory = build_factory(ExtendedEmployee, [ColumnInfo("Category", str)])
        assert factory(("lead",)).category is EmployeeCategory.LEAD

    def test_enum_from_int_column(self) -> None:
        factory = build_factory(ExtendedEmployee, [ColumnInfo("Category", int)])
        assert factory((3,)).category is EmployeeCategory.MANAGER

    def test_pydantic_target(self) -> None:
        factory = build_factory(EmployeeModel, EMPLOYEE_COLUMNS)
        result = factory((1, "A", 1))
        assert isinstance(result, EmployeeModel)
        assert (result.id, result.name) == (1, "A")

    def test_plain_class_target(self) -> None:
        factory = build_factory(PlainEmployee, EMPLOYEE_COLUMNS)
        result = factory((1, "A", 1))
        assert (result.id, result.name) == (1, "A")

    def test_frozen_target_is_rejected_at_build_time(self) -> None:
        with pytest.raises(ConfigurationError):
            build_factory(FrozenEmployee, [ColumnInfo("Id", int)])


class TestConversionErrors:
    def test_error_names_field_column_and_value(self) -> None:
        factory = build_factory(Employee, [ColumnInfo("Id", str), ColumnInfo("Name", str)])
        with pytest.raises(ConversionError) as exc_info:
            factory(("abc", "A"))
        error = exc_info.value
        assert error.field_name == "id"
        assert error.column_name == "Id"
        assert error.value == "abc"
        assert error.target_class is Employee
        assert isinstance(error.__cause__, ValueError)

    def test_factory_still_usable_after_error(self) -> None:
        factory = build_factory(Employee, [ColumnInfo("Id", str)])
        with pytest.raises(ConversionError):
            factory(("abc",))
        assert factory(("12",)).id == 12

    def test_invalid_enum_value(self) -> None:
        factory = build_factory(ExtendedEmployee, [ColumnInfo("Category", str)])
        with pytest.raises(ConversionError) as exc_info:
            factory(("intern",))
        assert exc_info.value.field_name == "category"


class TestScalarTargets:
    def test_first_column_is_the_value(self) -> None:
        factory = build_factory(int, [ColumnInfo("count", int), ColumnInfo("other", str)])
        assert factory((5, "x")) == 5

    def test_scalar_conversion(self) -> None:
        factory = build_factory(int, [ColumnInfo("count", str)])
        assert factory(("7",)) == 7

    def test_scalar_null(self) -> None:
        factory = build_factory(str, [ColumnInfo("name", str)])
        assert factory((None,)) is None

    def test_int_null_is_none_not_zero(self) -> None:
        factory = build_factory(int, [ColumnInfo("max_id", int)])
        assert factory((None,)) is None

    def test_scalar_without_columns(self) -> None:
        with pytest.raises(ConfigurationError):
            build_factory(int, [])

    def test_scalar_conversion_error(self) -> None:
        factory = build_factory(int, [ColumnInfo("count", str)])
        with pytest.raises(ConversionError):
            factory(("x",))


class TestMappingTargets:
    def test_dict_row(self) -> None:
        factory = build_factory(dict, EMPLOYEE_COLUMNS)
        assert factory((1, "Employee1", None)) == {
            "Id": 1,
            "Name": "Employee1",
            "DepartmentId": None,
        }

    def test_values_are_not_converted(self) -> None:
        factory = build_factory(dict, [ColumnInfo("Id", object)])
        assert factory(("7",)) == {"Id": "7"}

    def test_each_call_returns_new_dict(self) -> None:
        factory = build_factory(dict, EMPLOYEE_COLUMNS)
        assert factory((1, "A", 1)) is not factory((1, "A", 1))

    def test_abstract_mapping_gets_dict(self) -> None:
        factory = build_factory(Mapping, [ColumnInfo("Id", int)])
        assert type(factory((1,))) is dict

    def test_dict_subclass(self) -> None:
        factory = build_factory(OrderedDict, EMPLOYEE_COLUMNS)
        row = factory((1, "A", 2))
        assert isinstance(row, OrderedDict)
        assert list(row) == ["Id", "Name", "DepartmentId"]
