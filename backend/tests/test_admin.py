"""Back-office session, password and catalog maintenance."""

import pytest

from visitdesk.errors import ConflictError, NotFoundError
from visitdesk.models import Product
from visitdesk.services import auth_service, products_service, sales_service
from visitdesk.services.auth_service import AuthenticationError, PasswordValidationError
from visitdesk.validation import ValidationError


class TestAdminSession:
    def test_admin_routes_require_login(self, client, db_session):
        assert client.get('/api/admin/products').status_code == 401
        assert client.post('/api/admin/products', json={'name': 'X', 'price_cents': 1}).status_code == 401
        assert client.get('/api/admin/me').json == {'admin': False}

    def test_login_without_password_configured(self, client, db_session):
        response = client.post('/api/admin/login', json={'password': 'whatever-123'})
        assert response.status_code == 401

    def test_wrong_password(self, client, db_session, admin_password):
        auth_service.set_admin_password(admin_password)

        response = client.post('/api/admin/login', json={'password': 'not-the-password'})

        assert response.status_code == 401
        assert client.get('/api/admin/me').json == {'admin': False}

    def test_login_and_logout(self, admin_client, db_session):
        assert admin_client.get('/api/admin/me').json == {'admin': True}

        admin_client.post('/api/admin/logout')

        assert admin_client.get('/api/admin/products').status_code == 401

    def test_change_password(self, admin_client, db_session, admin_password):
        response = admin_client.post('/api/admin/password', json={
            'current_password': 'wrong-password',
            'new_password': 'another-pass-456',
        })
        assert response.status_code == 401

        response = admin_client.post('/api/admin/password', json={
            'current_password': admin_password,
            'new_password': 'another-pass-456',
        })
        assert response.status_code == 200
        assert auth_service.check_admin_password('another-pass-456')
        assert not auth_service.check_admin_password(admin_password)


class TestPasswords:
    @pytest.mark.parametrize("password", [None, "", "short", " padded-password", "padded-password "])
    def test_weak_passwords(self, db_session, password):
        with pytest.raises(PasswordValidationError):
            auth_service.set_admin_password(password)
        assert not auth_service.is_admin_password_set()

    def test_hash_is_not_plaintext(self, db_session, admin_password):
        hashed = auth_service.hash_password(admin_password)
        assert hashed != admin_password
        assert auth_service.verify_password(admin_password, hashed)
        assert not auth_service.verify_password(admin_password, "not-a-bcrypt-hash")

    def test_change_requires_current_password(self, db_session, admin_password):
        auth_service.set_admin_password(admin_password)
        with pytest.raises(AuthenticationError):
            auth_service.change_admin_password("nope-nope-nope", "another-pass-456")


class TestProducts:
    def test_create_and_list(self, admin_client, db_session):
        response = admin_client.post('/api/admin/products', json={'name': 'Drink', 'price_cents': 300})
        assert response.status_code == 201
        assert response.json['product']['is_active'] is True

        names = [p['name'] for p in admin_client.get('/api/admin/products').json['products']]
        assert names == ['Drink']

    def test_bulk_update_is_all_or_nothing(self, db_session, prices):
        first = prices['First hour']

        with pytest.raises(NotFoundError):
            products_service.update_products([
                {'id': first.id, 'price_cents': 1800},
                {'id': 99999, 'price_cents': 100},
            ])

        assert db_session.get(Product, first.id).price_cents == 1500

    def test_update_rejects_unknown_fields_and_bad_prices(self, db_session, prices):
        first = prices['First hour']

        with pytest.raises(ValidationError):
            products_service.update_products([{'id': first.id, 'created_at': 'now'}])
        with pytest.raises(ValidationError):
            products_service.update_products([{'id': first.id, 'price_cents': -5}])
        with pytest.raises(ValidationError):
            products_service.update_products([{'id': first.id, 'price_cents': '12.50'}])

    def test_update_via_route(self, admin_client, db_session, prices):
        ext = prices['Extension hour']

        response = admin_client.put('/api/admin/products', json={
            'updates': [{'id': ext.id, 'price_cents': 600, 'is_active': True}],
        })

        assert response.status_code == 200
        assert db_session.get(Product, ext.id).price_cents == 600

    def test_delete_product_with_sales_is_conflict(self, db_session, prices, clock):
        drink = prices['Drink']
        sales_service.create_sale([{'product_id': drink.id, 'qty': 1}], 'CASH')

        with pytest.raises(ConflictError):
            products_service.delete_product(drink.id)

    def test_delete_unused_product(self, admin_client, db_session):
        product = products_service.create_product({'name': 'Poster', 'price_cents': 900})

        assert admin_client.delete(f'/api/admin/products/{product.id}').status_code == 200
        assert db_session.get(Product, product.id) is None
