import json

import pytest

from app.backbone import create_app
from app.backbone.errors import ConstraintViolation, ValidationException
from app.backbone.models import Base
from app.backbone.modules.dict.dto import CreateDictDataDto, CreateDictTypeDto, UpdateDictDataDto, UpdateDictTypeDto
from app.backbone.modules.dict.errors import DictErrorCode, DictValidationException
from app.backbone.modules.dict.validation import DateRangeRule, NumberRule, parse_rule


@pytest.fixture()
def services(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])
    return app.extensions["services"]


def _type(services, code="size", rule=None, **kw):
    return services.dict_types.create_dict_type(
        CreateDictTypeDto(dict_code=code, dict_name=code.title(), validation_rule=rule, **kw)
    )


def _data(services, type_id, value, label=None, **kw):
    return services.dict_data.create_dict_data(
        CreateDictDataDto(dict_type_id=type_id, data_value=value, data_label=label or value, **kw)
    )


def test_parse_rule():
    assert parse_rule('{"type": "number", "integerOnly": true}') == NumberRule(integer_only=True)
    assert parse_rule({"type": "dateRange", "minDate": "2020-01-01"}).min_date == "2020-01-01"
    for bad in ("not json", "[]", '{"type": "nope"}', '{"type": "regex", "pattern": "("}', '{"type": "enum"}'):
        with pytest.raises(ValueError):
            parse_rule(bad)


def test_date_range_rule():
    rule = DateRangeRule(format="yyyy-MM-dd", min_date="2020-01-01", max_date="2020-12-31")
    assert rule.validate("2020-06-01")
    assert not rule.validate("2021-01-01")
    assert not rule.validate("06/01/2020")


def test_create_dict_type(services):
    t = _type(services, value_type="string")
    assert t.value_type == "STRING"
    assert services.dict_types.get_dict_type_by_code("size").id == t.id
    assert _type(services) is None

    with pytest.raises(ValidationException) as exc:
        _type(services, code="bad", rule='{"type": "nope"}')
    assert exc.value.error_code is DictErrorCode.DICT_PARAM_INVALID


def test_update_and_disable_dict_type(services):
    size = _type(services)
    color = _type(services, code="color", dict_category="look")
    assert services.dict_types.update_dict_type(size.id, UpdateDictTypeDto(dict_name="Sizes")) is True
    assert services.dict_types.get_dict_type_by_id(size.id).dict_name == "Sizes"

    with pytest.raises(ConstraintViolation) as exc:
        services.dict_types.update_dict_type(color.id, UpdateDictTypeDto(dict_code="size"))
    assert exc.value.error_code is DictErrorCode.DICT_TYPE_CODE_EXISTS

    services.dict_types.update_dict_type(size.id, UpdateDictTypeDto(status=False))
    assert services.dict_types.get_dict_type_by_id(size.id) is None
    assert [t.dict_code for t in services.dict_types.get_all_dict_types()] == ["color"]
    assert [t.dict_code for t in services.dict_types.get_dict_types_by_status(False)] == ["size"]
    assert [t.dict_code for t in services.dict_types.get_dict_types_by_category("look")] == ["color"]


def test_delete_dict_type_is_soft(services):
    t = _type(services)
    assert services.dict_types.delete_dict_type(t.id) is True
    assert services.dict_types.get_dict_type_by_code("size") is None
    assert services.dict_type_dao.find_by_id(t.id, include_deleted=True) is not None


def test_create_dict_data_validates_against_rule(services):
    t = _type(services, rule=json.dumps({"type": "enum", "values": ["S", "M", "L"]}))
    assert _data(services, t.id, "M", "Medium").data_label == "Medium"
    assert _data(services, t.id, "M") is None

    with pytest.raises(DictValidationException) as exc:
        _data(services, t.id, "XL")
    assert exc.value.error_code is DictErrorCode.DICT_VALIDATION_ERROR
    assert exc.value.details == {"dict_code": "size", "value": "XL"}


def test_custom_validation_message(services):
    t = _type(services, rule='{"type": "range", "min": 1, "max": 10}', validation_message="Pick 1-10")
    with pytest.raises(DictValidationException, match="Pick 1-10"):
        _data(services, t.id, "11")


def test_data_for_missing_or_disabled_type(services):
    assert _data(services, 999, "x") is None
    t = _type(services)
    services.dict_types.update_dict_type(t.id, UpdateDictTypeDto(status=False))
    assert _data(services, t.id, "x") is None


def test_update_dict_data(services):
    t = _type(services, rule='{"type": "length", "maxLength": 3}')
    a = _data(services, t.id, "S")
    _data(services, t.id, "M")

    assert services.dict_data.update_dict_data(a.id, UpdateDictDataDto(data_label="Small")) is True
    assert services.dict_data.get_dict_data_by_id(a.id).data_label == "Small"

    with pytest.raises(ConstraintViolation) as exc:
        services.dict_data.update_dict_data(a.id, UpdateDictDataDto(data_value="M"))
    assert exc.value.error_code is DictErrorCode.DICT_DATA_VALUE_EXISTS

    with pytest.raises(DictValidationException):
        services.dict_data.update_dict_data(a.id, UpdateDictDataDto(data_value="TOO LONG"))
    assert services.dict_data.update_dict_data(999, UpdateDictDataDto(data_label="x")) is False


def test_lookups(services):
    t = _type(services)
    _data(services, t.id, "L", sort_order=3)
    _data(services, t.id, "S", sort_order=1, is_default=True)
    m = _data(services, t.id, "M", sort_order=2, status=False)

    assert [d.data_value for d in services.dict_data.get_dict_data_by_code("size")] == ["S", "M", "L"]
    assert [d.data_value for d in services.dict_data.get_active_dict_data_by_code("size")] == ["S", "L"]
    assert services.dict_data.get_default_dict_data_by_code("size").data_value == "S"
    assert services.dict_data.get_dict_data_by_code_and_value("size", "M").id == m.id
    assert len(services.dict_data.get_dict_data_by_type_id(t.id)) == 3

    assert services.dict_data.delete_dict_data(m.id) is True
    assert services.dict_data.get_dict_data_by_code_and_value("size", "M") is None


def test_tree(services):
    t = _type(services, code="region", is_tree=True)
    asia = _data(services, t.id, "asia", sort_order=2)
    europe = _data(services, t.id, "europe", sort_order=1)
    _data(services, t.id, "cn", parent_id=asia.id, level=2)
    _data(services, t.id, "fr", parent_id=europe.id, level=2)

    tree = services.dict_data.get_dict_data_tree_by_code("region")
    assert [n.data_value for n in tree] == ["europe", "asia"]
    assert [c.data_value for c in tree[1].children] == ["cn"]
    assert [d.data_value for d in services.dict_data.get_dict_data_by_code_and_parent("region", europe.id)] == ["fr"]
