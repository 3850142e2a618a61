"""
Initialize database for the corte de caja system
Crea las tablas, la configuración por defecto y los usuarios iniciales
"""
import sys

from main import app, db
import models
import repository


def create_initial_data(reset=False):
    with app.app_context():
        if reset:
            db.drop_all()
        db.create_all()

        settings = repository.load_settings()
        users = repository.get_users()

        # Recepcionistas de muestra solo en una base nueva
        if len(users) == 1 and users[0].is_super_admin:
            repository.save_user(models.User(
                name='Helen',
                pin='1111',
                role=models.UserRole.RECEPTIONIST,
                receptionist_name='Helen',
            ))
            users = repository.get_users()

        print("✅ Base de datos inicializada")
        print("\n👤 Usuarios:")
        for user in users:
            print(f"   - {user.name} / PIN {user.pin} ({user.role.value})")
        print(f"\n🧾 Tipos de venta: {', '.join(settings.sales_types)}")
        print(f"💳 Métodos de pago: {', '.join(settings.payment_methods)}")


if __name__ == '__main__':
    create_initial_data(reset='--reset' in sys.argv)
