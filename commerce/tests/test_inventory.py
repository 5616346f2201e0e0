from django.test import TestCase

from commerce.catalog.inventory import take_course_seat, take_stock, take_stock_clamped
from commerce.models import Product

from .helpers import make_course, make_product


class CourseSeatTests(TestCase):
    def test_seat_taken_while_capacity_left(self):
        course = make_course(max_students=2, current_students=1)

        self.assertTrue(take_course_seat(course.pk))

        course.refresh_from_db()
        self.assertEqual(course.current_students, 2)

    def test_full_course_is_never_exceeded(self):
        course = make_course(max_students=1, current_students=0)

        self.assertTrue(take_course_seat(course.pk))
        # second increment from a stale view of the course
        self.assertFalse(take_course_seat(course.pk))

        course.refresh_from_db()
        self.assertEqual(course.current_students, 1)
        self.assertTrue(course.is_full)
        self.assertEqual(course.available_seats, 0)


class StockTests(TestCase):
    def test_take_stock_decrements_and_counts_sales(self):
        product = make_product(stock=5)

        self.assertTrue(take_stock(product.pk, 3))

        product.refresh_from_db()
        self.assertEqual(product.stock, 2)
        self.assertEqual(product.sales, 3)
        self.assertEqual(product.availability, Product.Availability.IN_STOCK)

    def test_take_stock_refuses_shortfall(self):
        product = make_product(stock=2)

        self.assertFalse(take_stock(product.pk, 3))

        product.refresh_from_db()
        self.assertEqual(product.stock, 2)
        self.assertEqual(product.sales, 0)

    def test_last_unit_flags_out_of_stock(self):
        product = make_product(stock=2)

        take_stock(product.pk, 2)

        product.refresh_from_db()
        self.assertEqual(product.stock, 0)
        self.assertEqual(product.availability, Product.Availability.OUT_OF_STOCK)

    def test_clamped_take_floors_at_zero_and_warns(self):
        product = make_product(stock=1)

        with self.assertLogs("commerce.catalog.inventory", level="WARNING") as logs:
            taken = take_stock_clamped(product.pk, 3)

        self.assertEqual(taken, 1)
        self.assertIn("stock floored at 0", logs.output[0])
        product.refresh_from_db()
        self.assertEqual(product.stock, 0)
        self.assertEqual(product.sales, 1)
        self.assertEqual(product.availability, Product.Availability.OUT_OF_STOCK)

    def test_sku_is_stored_uppercase(self):
        product = make_product(sku=" abc-12 ")
        self.assertEqual(product.sku, "ABC-12")
