import pytest
from app.constants.roles import GlobalRole, GroupRole, role_level, meets_role


@pytest.mark.parametrize('role,level', [
    ('owner', 3), ('editor', 2), ('viewer', 1),
    (GroupRole.OWNER, 3), (GroupRole.VIEWER, 1),
    (None, 0), ('', 0), ('admin', 0), ('superuser', 0), (42, 0),
])
def test_role_level(role, level):
    assert role_level(role) == level


def test_meets_role_ordering():
    assert meets_role('owner', 'editor')
    assert meets_role('editor', 'editor')
    assert not meets_role('viewer', 'editor')
    assert not meets_role(None, 'viewer')
    # unknown actual never satisfies a real requirement
    assert not meets_role('bogus', GroupRole.VIEWER)


def test_global_role_coerce():
    assert GlobalRole.coerce('admin') is GlobalRole.ADMIN
    assert GlobalRole.coerce(GlobalRole.EDITOR) is GlobalRole.EDITOR
    assert GlobalRole.coerce('root') is GlobalRole.USER
    assert GlobalRole.coerce(None) is GlobalRole.USER
