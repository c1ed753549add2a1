from dataclasses import replace
from datetime import date, timedelta

from erp_admin.extensions import db
from erp_admin.models.notification import NotificationType
from erp_admin.models.organization import Organization
from erp_admin.models.permission import ModuleId
from erp_admin.models.purchase_order import PurchaseOrderStatus
from erp_admin.models.user import UserRole
from erp_admin.services import (
    inventory_service,
    notification_service,
    organization_service,
    permission_service,
    purchase_service,
    user_service,
)

DEMO_PASSWORD = "password123"


def seed_database(app=None):
    if app is None:
        from erp_admin.main import create_app
        app = create_app()
    with app.app_context():
        db.create_all()
        print("Checking if database needs seeding...")

        if Organization.query.first() is not None:
            print("Database already contains data. Skipping seeding.")
            return

        print("Seeding database with initial data...")

        organization, admin = organization_service.create_organization_with_admin(
            "Demo Manufacturing", "DEMO", "Alice Admin", "admin@example.com", DEMO_PASSWORD,
        )
        manager = user_service.create_user(
            "Mark Manager", "manager@example.com", DEMO_PASSWORD,
            role=UserRole.MANAGER, organization_id=organization.id,
        )
        clerk = user_service.create_user(
            "Bob Basic", "basic@example.com", DEMO_PASSWORD,
            role=UserRole.BASIC, organization_id=organization.id, manager_id=manager.id,
        )
        # Warehouse clerk: inventory and purchasing on top of the defaults
        working_set = [
            replace(p, can_view=True) if p.module_id in (ModuleId.INVENTORY, ModuleId.PURCHASE) else p
            for p in permission_service.get_effective_permissions(clerk.id, clerk.role)
        ]
        permission_service.save_permissions(clerk.id, working_set)

        cpu = inventory_service.create_item(
            "CPU-INT-I7", "Intel i7 Processor", created_by=admin.id,
            description="High-end CPU", item_type="component", current_quantity=50,
            minimum_quantity=20, reorder_quantity=40, unit_price=350.00, location="A-01",
        )
        ram = inventory_service.create_item(
            "RAM-DDR4-16G", "16GB DDR4 RAM", created_by=admin.id,
            description="Standard RAM module", item_type="component", current_quantity=150,
            minimum_quantity=50, reorder_quantity=100, unit_price=75.50, location="A-02",
        )
        inventory_service.create_item(
            "SSD-NVME-1TB", "1TB NVMe SSD", created_by=admin.id,
            description="Fast solid state drive", item_type="component", current_quantity=25,
            minimum_quantity=30, reorder_quantity=60, unit_price=120.00, location="A-03",
        )
        inventory_service.create_item(
            "ALU-SHEET-1MM", "Aluminum Sheet 1mm", created_by=admin.id,
            description="Standard aluminum sheet", item_type="raw_material", current_quantity=300,
            minimum_quantity=100, reorder_quantity=200, unit_price=25.00, location="B-01",
            unit_of_measure="sheet",
        )

        order = purchase_service.create_order(
            "Global Components Inc.",
            [
                {"product_name": cpu.name, "quantity": 10, "unit_price": 340.00, "inventory_item_id": cpu.id},
                {"product_name": ram.name, "quantity": 40, "unit_price": 72.00, "inventory_item_id": ram.id},
            ],
            created_by=clerk.id,
            expected_delivery_date=date.today() + timedelta(days=14),
            notes="Quarterly restock",
        )
        purchase_service.update_status(order.id, PurchaseOrderStatus.PENDING_APPROVAL, changed_by=clerk.id)
        purchase_service.update_status(order.id, PurchaseOrderStatus.APPROVED, changed_by=manager.id)

        notification_service.send_system_notification(
            "Welcome to ERP Admin",
            "Notifications for stock levels and purchase orders will appear here.",
            NotificationType.INFO,
        )
        notification_service.send_notification(
            admin.id, "Review user permissions",
            f"{clerk.name} was granted inventory and purchase access.",
            NotificationType.MESSAGE,
            link=f"/admin/user/{clerk.id}/permissions", entity_type="user", linked_entity_id=clerk.id,
        )
        print("Database seeded successfully!")


if __name__ == "__main__":
    seed_database()
