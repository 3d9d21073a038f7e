import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from warden import (  # noqa: E402
    HelperDeclaration,
    clear_helper_registry,
    get_registered_helpers,
    parse_inline_helpers,
    register_helpers,
)
from warden.helpers import resolve_helpers  # noqa: E402
from warden.runtime import assemble, verify_program  # noqa: E402


@pytest.fixture(autouse=True)
def _clean_registry():
    clear_helper_registry()
    yield
    clear_helper_registry()


def test_parse_inline_helpers_schema():
    decls = parse_inline_helpers("map_lookup:1/2, trace:6\n# comment\nktime:5/0")
    assert [d.name for d in decls] == ["map_lookup", "trace", "ktime"]
    assert [d.id for d in decls] == [1, 6, 5]
    assert [d.arg_count for d in decls] == [2, 5, 0]


def test_parse_inline_helpers_rejects_bad_entries():
    with pytest.raises(ValueError, match="Invalid inline helper"):
        parse_inline_helpers("map_lookup=1")


@pytest.mark.parametrize(
    "kwargs",
    [
        {"name": "", "id": 1},
        {"name": "x", "id": 64},
        {"name": "x", "id": -1},
        {"name": "x", "id": "one"},
        {"name": "x", "id": 1, "arg_count": 6},
    ],
)
def test_helper_declaration_validation(kwargs):
    with pytest.raises(ValueError):
        HelperDeclaration(**kwargs)


def test_helper_declaration_dict_round_trip():
    decl = HelperDeclaration("trace", 6, 1)
    assert HelperDeclaration.from_dict(decl.to_dict()) == decl
    assert HelperDeclaration.from_dict({"name": "t", "id": 2, "args": 3}).arg_count == 3
    with pytest.raises(TypeError):
        HelperDeclaration.from_dict(["trace", 6])


def test_resolve_helpers_accepts_json_and_mappings():
    table = resolve_helpers('[{"name": "a", "id": 3}, {"name": "b", "id": 4}]')
    assert sorted(table) == [3, 4]
    assert resolve_helpers({"helpers": [{"name": "a", "id": 3}]})[3].name == "a"
    assert resolve_helpers([]) == {}
    with pytest.raises(ValueError, match="Duplicate helper id 3"):
        resolve_helpers("a:3, b:3")
    with pytest.raises(TypeError):
        resolve_helpers(3.5)


def test_registry_registration_and_snapshot():
    register_helpers("map_lookup:1/2")
    snapshot = get_registered_helpers()
    assert snapshot[1].name == "map_lookup"
    snapshot.clear()
    assert 1 in get_registered_helpers()

    with pytest.raises(ValueError, match="Duplicate helper id 1"):
        register_helpers(HelperDeclaration("other", 1))

    register_helpers("trace:6", reset=True)
    assert sorted(get_registered_helpers()) == [6]
    assert resolve_helpers(None) == get_registered_helpers()


def test_verifier_uses_the_global_registry_by_default():
    program = assemble("call 6\nexit")
    assert not verify_program(program).ok

    register_helpers("trace:6")
    assert verify_program(program).ok
