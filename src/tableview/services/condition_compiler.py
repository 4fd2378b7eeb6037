"""Compiles condition trees into SQL boolean expressions and sub-queries.

Literals are rendered inline through ``quote_literal``; row data elsewhere
uses bound parameters. Keeping literal rendering in one function leaves a
single place to switch conditions over to parameters.
"""

from typing import Any

from tableview.errors import MalformedCondition
from tableview.models.condition import CompoundCondition, SubQuery, ValueCondition
from tableview.models.enums import ValueOperator

_LIKE_WILDCARDS = ("%", "_")


def quote_literal(value: Any) -> str:
    """Render a scalar as an inline SQL literal."""
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (int, float)):
        return repr(value)
    text = str(value).replace("'", "''")
    return f"'{text}'"


def compile_condition(condition: ValueCondition | CompoundCondition) -> str:
    """Compile a condition into a SQL fragment.

    Args:
        condition: Root of the condition tree.

    Returns:
        A boolean expression, or a SELECT statement for compound conditions
        that carry a source table and projected column.

    Raises:
        MalformedCondition: If any node of the tree has an invalid shape.
    """
    match condition:
        case CompoundCondition():
            return _compile_compound(condition)
        case ValueCondition():
            return _compile_value(condition)
        case _:
            raise MalformedCondition(f"Unsupported condition type: {type(condition).__name__}")


def compile_where(condition: ValueCondition | CompoundCondition | None) -> str:
    """Return a ``WHERE ...`` clause, or an empty string without a condition."""
    if condition is None:
        return ""
    return f"WHERE {compile_condition(condition)}"


def referenced_tables(condition: ValueCondition | CompoundCondition | None) -> set[str]:
    """Collect tables read by sub-queries nested in the condition."""
    tables: set[str] = set()
    if condition is None:
        return tables
    if isinstance(condition, CompoundCondition):
        if condition.source_table is not None:
            tables.add(condition.source_table)
        for operand in condition.operands:
            tables |= referenced_tables(operand)
    elif isinstance(condition.operand, SubQuery):
        tables.add(condition.operand.table)
        tables |= referenced_tables(condition.operand.condition)
    return tables


def _compile_compound(condition: CompoundCondition) -> str:
    if not condition.operands:
        raise MalformedCondition("Compound condition requires at least one operand")

    if len(condition.operands) == 1:
        sql = compile_condition(condition.operands[0])
    else:
        sql = f" {condition.operator.value} ".join(
            f"( {compile_condition(operand)} )" for operand in condition.operands
        )

    if condition.is_subquery:
        sql = f"SELECT {condition.projected_column} FROM {condition.source_table} WHERE {sql}"
    return sql


def _compile_value(condition: ValueCondition) -> str:
    column = condition.column
    if not column:
        raise MalformedCondition("Value condition requires a column")

    operator = condition.operator or _infer_operator(condition.operand)
    operand = condition.operand

    if operator is ValueOperator.BETWEEN:
        if not isinstance(operand, list) or len(operand) != 2:
            raise MalformedCondition(f"BETWEEN on {column} requires a [low, high] pair")
        low, high = operand
        return f"{column} >= {quote_literal(low)} AND {column} <= {quote_literal(high)}"

    if operator is ValueOperator.IN_SUBQUERY:
        if not isinstance(operand, SubQuery):
            raise MalformedCondition(f"IN_SUBQUERY on {column} requires a sub-query operand")
        projected = operand.column or column
        nested = compile_condition(operand.condition)
        return f"{column} IN (SELECT {projected} FROM {operand.table} WHERE {nested})"

    if isinstance(operand, (list, SubQuery)):
        raise MalformedCondition(f"Operator {operator.value} on {column} requires a scalar operand")

    if operator in (ValueOperator.LIKE, ValueOperator.NOT_LIKE):
        if not isinstance(operand, str):
            raise MalformedCondition(f"{operator.value} on {column} requires a string operand")
        if not any(wildcard in operand for wildcard in _LIKE_WILDCARDS):
            operand = f"%{operand}%"
        keyword = "NOT LIKE" if operator is ValueOperator.NOT_LIKE else "LIKE"
        return f"{column} {keyword} {quote_literal(operand)}"

    if operator is ValueOperator.IS_NULL:
        return f"{column} IS NULL"
    if operator is ValueOperator.IS_NOT_NULL:
        return f"{column} IS NOT NULL"

    # Empty string and null both mean SQL NULL for equality.
    if operand is None or operand == "":
        return f"{column} IS NOT NULL" if operator is ValueOperator.NEQ else f"{column} IS NULL"

    symbol = "!=" if operator is ValueOperator.NEQ else "="
    return f"{column} {symbol} {quote_literal(operand)}"


def _infer_operator(operand: Any) -> ValueOperator:
    if isinstance(operand, SubQuery):
        return ValueOperator.IN_SUBQUERY
    if isinstance(operand, list) and len(operand) == 2:
        return ValueOperator.BETWEEN
    return ValueOperator.EQ
