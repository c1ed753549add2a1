from erp_admin.extensions import db
from erp_admin.models.organization import Organization
from erp_admin.models.user import UserRole
from erp_admin.services import user_service


class DuplicateOrganizationCode(Exception):
    pass


def get_all():
    return Organization.query.order_by(Organization.name).all()


def get_by_code(code):
    return Organization.query.filter_by(code=code.strip().upper()).first()


def create_organization_with_admin(name, code, admin_name, admin_email, admin_password):
    """Create an organization together with its first, active ADMIN user.

    Both rows and the admin link are committed together or not at all.
    """
    if get_by_code(code) is not None:
        raise DuplicateOrganizationCode(f"Organization code {code} is already taken")

    organization = Organization(name=name.strip(), code=code.strip().upper(), is_active=True)
    db.session.add(organization)
    db.session.flush()  # Flush to get the organization id

    try:
        admin = user_service.create_user(
            admin_name, admin_email, admin_password,
            role=UserRole.ADMIN, is_active=True, organization_id=organization.id,
            commit=False,
        )
    except user_service.DuplicateEmail:
        db.session.rollback()
        raise
    organization.admin_user_id = admin.id
    db.session.commit()
    return organization, admin
