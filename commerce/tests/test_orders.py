from decimal import Decimal

from rest_framework import status
from rest_framework.test import APITestCase

from commerce.models import Order, Product

from .helpers import make_product, make_user

ORDERS_URL = "/api/orders/"


def _checkout(items, **extra):
    payload = {
        "customer": {
            "fullName": "Mahamat Saleh",
            "email": "mahamat@example.com",
            "phone": "+23566001122",
            "address": "Quartier Klemat",
        },
        "items": items,
        "paymentMethod": "airtel_money",
    }
    payload.update(extra)
    return payload


class OrderCreationTests(APITestCase):
    @classmethod
    def setUpTestData(cls):
        cls.user = make_user("mahamat")

    def setUp(self):
        self.client.force_authenticate(self.user)
        self.router = make_product(sku="RTR-100", price="45000", stock=5)
        self.cable = make_product(sku="CBL-100", price="1500", stock=2)

    def test_order_snapshots_prices_and_takes_stock(self):
        response = self.client.post(
            ORDERS_URL,
            _checkout(
                [
                    {"productId": self.router.pk, "quantity": 2},
                    {"productId": self.cable.pk, "quantity": 2},
                ],
                discount="3000",
            ),
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        body = response.json()["order"]
        self.assertTrue(body["reference"].startswith("CMD-"))
        self.assertEqual(Decimal(body["total"]), Decimal("90000"))
        self.assertEqual(body["status"], Order.Status.PENDING)
        self.assertEqual(body["payment"]["status"], Order.PaymentStatus.PENDING)
        self.assertEqual(body["payment"]["method"], "airtel_money")

        order = Order.objects.get(pk=body["id"])
        self.assertEqual(order.subtotal, Decimal("93000"))
        self.assertEqual(order.customer_city, "N'Djamena")
        self.assertEqual(order.user, self.user)

        # later price changes do not touch the order
        Product.objects.filter(pk=self.router.pk).update(price=Decimal("99000"))
        line = order.items.get(product=self.router)
        self.assertEqual(line.unit_price, Decimal("45000"))
        self.assertEqual(line.subtotal, Decimal("90000"))
        self.assertEqual(line.sku, "RTR-100")

        self.router.refresh_from_db()
        self.cable.refresh_from_db()
        self.assertEqual(self.router.stock, 3)
        self.assertEqual(self.cable.stock, 0)
        self.assertEqual(self.cable.availability, Product.Availability.OUT_OF_STOCK)

    def test_discount_never_makes_total_negative(self):
        response = self.client.post(
            ORDERS_URL,
            _checkout([{"productId": self.cable.pk, "quantity": 1}], discount="5000"),
            format="json",
        )
        self.assertEqual(Decimal(response.json()["order"]["total"]), Decimal("0"))

    def test_insufficient_stock_rolls_back_whole_order(self):
        response = self.client.post(
            ORDERS_URL,
            _checkout(
                [
                    {"productId": self.router.pk, "quantity": 1},
                    {"productId": self.cable.pk, "quantity": 3},
                ]
            ),
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("available: 2", response.json()["detail"])
        self.assertFalse(Order.objects.exists())
        self.router.refresh_from_db()
        self.assertEqual(self.router.stock, 5)

    def test_inactive_product_is_not_found(self):
        Product.objects.filter(pk=self.router.pk).update(is_active=False)

        response = self.client.post(
            ORDERS_URL, _checkout([{"productId": self.router.pk, "quantity": 1}]), format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_schema_errors_are_unprocessable(self):
        payload = _checkout([{"productId": self.router.pk, "quantity": 11}])
        payload["customer"]["email"] = "not-an-email"

        response = self.client.post(ORDERS_URL, payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        errors = response.json()["errors"]
        self.assertIn("customer", errors)
        self.assertIn("items", errors)

    def test_nested_payment_object_is_accepted(self):
        payload = _checkout([{"productId": self.router.pk, "quantity": 1}])
        del payload["paymentMethod"]
        payload["payment"] = {"method": "moov_money", "provider": "moov"}

        response = self.client.post(ORDERS_URL, payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        order = Order.objects.get(pk=response.json()["order"]["id"])
        self.assertEqual(order.payment_method, "moov_money")
        self.assertEqual(order.payment_provider, "moov")

    def test_payment_method_is_required(self):
        payload = _checkout([{"productId": self.router.pk, "quantity": 1}])
        del payload["paymentMethod"]

        response = self.client.post(ORDERS_URL, payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertIn("payment", response.json()["errors"])

    def test_customer_field_lengths(self):
        payload = _checkout([{"productId": self.router.pk, "quantity": 1}])
        payload["customer"].update(fullName="Ali", phone="12345", address="Klemat", city="N")

        response = self.client.post(ORDERS_URL, payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        errors = response.json()["errors"]["customer"]
        self.assertEqual(set(errors), {"fullName", "phone", "address", "city"})
        self.assertFalse(Order.objects.exists())

    def test_duplicate_lines_are_rejected(self):
        response = self.client.post(
            ORDERS_URL,
            _checkout(
                [
                    {"productId": self.router.pk, "quantity": 1},
                    {"productId": self.router.pk, "quantity": 1},
                ]
            ),
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)


class OrderAccessTests(APITestCase):
    @classmethod
    def setUpTestData(cls):
        cls.owner = make_user("nadia")
        cls.stranger = make_user("oumar")
        cls.admin = make_user("admin", is_staff=True)
        cls.order = Order.objects.create(
            user=cls.owner,
            customer_full_name="Nadia",
            customer_email="nadia@example.com",
            customer_phone="66001122",
            customer_address="Chagoua",
            subtotal=Decimal("1000"),
            total=Decimal("1000"),
            payment_method="bank_transfer",
        )

    def test_list_shows_only_own_orders(self):
        self.client.force_authenticate(self.stranger)
        response = self.client.get(ORDERS_URL)
        self.assertEqual(response.json()["count"], 0)

        self.client.force_authenticate(self.owner)
        response = self.client.get(ORDERS_URL)
        self.assertEqual(response.json()["results"][0]["reference"], self.order.reference)

    def test_detail_of_other_user_is_not_found(self):
        self.client.force_authenticate(self.stranger)
        response = self.client.get(f"{ORDERS_URL}{self.order.pk}/")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_admin_changes_status(self):
        self.client.force_authenticate(self.admin)

        response = self.client.patch(
            f"{ORDERS_URL}{self.order.pk}/status/", {"status": "shipped"}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["status"], Order.Status.SHIPPED)

    def test_unknown_status_is_unprocessable(self):
        self.client.force_authenticate(self.admin)
        response = self.client.patch(
            f"{ORDERS_URL}{self.order.pk}/status/", {"status": "lost"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)

    def test_customer_cannot_change_status(self):
        self.client.force_authenticate(self.owner)
        response = self.client.patch(
            f"{ORDERS_URL}{self.order.pk}/status/", {"status": "completed"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
