"""声明式输入校验：以字段规格描述 schema，由单一递归校验器输出全部字段错误。"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any

from yield_provider.domain.models import ValidationError


class FieldKind(str, Enum):
    """字段类型枚举。"""
    string = "string"
    number = "number"
    boolean = "boolean"
    array = "array"
    string_array = "string_array"
    object = "object"
    object_array = "object_array"


@dataclass(slots=True, frozen=True)
class FieldSpec:
    """单个字段规格；object / object_array 通过 children 描述子字段。"""
    name: str
    kind: FieldKind
    required: bool = True
    children: tuple[FieldSpec, ...] = ()

    def describe(self) -> dict[str, Any]:
        """返回可序列化的字段描述，用于对外展示作业输入契约。"""
        entry: dict[str, Any] = {"field": self.name, "kind": self.kind.value, "required": self.required}
        if self.children:
            entry["children"] = [child.describe() for child in self.children]
        return entry


Schema = tuple[FieldSpec, ...]


def is_string(value: Any) -> bool:
    return isinstance(value, str)


def is_number(value: Any) -> bool:
    """有限数值判断；bool 不视为数值，NaN 与无穷大被拒绝。"""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def is_boolean(value: Any) -> bool:
    return isinstance(value, bool)


def is_array(value: Any) -> bool:
    return isinstance(value, list)


def is_object(value: Any) -> bool:
    return isinstance(value, dict)


_SCALAR_CHECKS = {
    FieldKind.string: (is_string, "string"),
    FieldKind.number: (is_number, "number"),
    FieldKind.boolean: (is_boolean, "boolean"),
}


def _join(prefix: str, name: str) -> str:
    return f"{prefix}.{name}" if prefix else name


def _message(path: str, expectation: str, required: bool) -> str:
    text = f"{path} must be {expectation}"
    return text if required else f"{text} when provided"


def _check_field(spec: FieldSpec, value: Any, path: str, errors: list[ValidationError]) -> None:
    if spec.kind in _SCALAR_CHECKS:
        check, label = _SCALAR_CHECKS[spec.kind]
        if not check(value):
            errors.append(ValidationError(_message(path, label, spec.required), path))
        return

    if spec.kind == FieldKind.array:
        if not is_array(value):
            errors.append(ValidationError(_message(path, "array", spec.required), path))
        return

    if spec.kind == FieldKind.string_array:
        if not is_array(value):
            errors.append(ValidationError(_message(path, "array of strings", spec.required), path))
        elif not all(is_string(item) for item in value):
            errors.append(ValidationError(f"{path} items must be strings", path))
        return

    if spec.kind == FieldKind.object:
        if not is_object(value):
            errors.append(ValidationError(_message(path, "object", spec.required), path))
            return
        _validate_into(value, spec.children, path, errors)
        return

    if spec.kind == FieldKind.object_array:
        if not is_array(value):
            errors.append(ValidationError(_message(path, "array", spec.required), path))
            return
        for index, item in enumerate(value):
            item_path = f"{path}[{index}]"
            if not is_object(item):
                errors.append(ValidationError(f"{item_path} must be object", item_path))
                continue
            _validate_into(item, spec.children, item_path, errors)
        return

    raise ValueError(f"unsupported field kind: {spec.kind}")


def _validate_into(payload: dict[str, Any], schema: Schema, prefix: str, errors: list[ValidationError]) -> None:
    for spec in schema:
        path = _join(prefix, spec.name)
        value = payload.get(spec.name)
        # 可选字段缺失不算错误，由下游计算填充默认值。
        if not spec.required and value is None:
            continue
        _check_field(spec, value, path, errors)


def validate(payload: Any, schema: Schema) -> list[ValidationError]:
    """按 schema 校验输入并返回按字段顺序排列的全部错误，永不抛出校验异常。"""
    errors: list[ValidationError] = []
    _validate_into(payload if is_object(payload) else {}, schema, "", errors)
    return errors
