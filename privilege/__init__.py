"""privilege/ -- Roles and the privilege codes bound to them.

Layer rule: privilege/ may import from core/ only. auth/ and cache/ do not
depend on it; callers combine check_login()["role_id"] with
RoleManager.has_privilege() themselves.
"""
