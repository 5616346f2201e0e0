import commerce.payments.models
import django.core.validators
import django.db.models.deletion
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


CURRENCY_CHOICES = [("XAF", "XAF (FCFA)"), ("USD", "USD"), ("EUR", "EUR")]
PAYMENT_METHOD_CHOICES = [
    ("airtel_money", "Airtel Money"),
    ("moov_money", "Moov Money"),
    ("bank_transfer", "Bank transfer"),
    ("prepaid_card", "Prepaid card"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Course",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("title", models.CharField(max_length=200, verbose_name="Title")),
                ("description", models.TextField(blank=True, verbose_name="Description")),
                ("price", models.DecimalField(decimal_places=2, max_digits=12, validators=[django.core.validators.MinValueValidator(0)], verbose_name="Price")),
                ("currency", models.CharField(choices=CURRENCY_CHOICES, default="XAF", max_length=3, verbose_name="Currency")),
                ("max_students", models.PositiveIntegerField(default=30, validators=[django.core.validators.MinValueValidator(1)], verbose_name="Maximum students")),
                ("current_students", models.PositiveIntegerField(default=0, help_text="Updated automatically when a payment completes", verbose_name="Current students")),
                ("is_active", models.BooleanField(default=True, verbose_name="Active")),
                ("start_date", models.DateField(blank=True, null=True, verbose_name="Start date")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Course",
                "verbose_name_plural": "Courses",
                "ordering": ["-created_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("current_students__lte", models.F("max_students"))),
                        name="course_current_students_lte_max",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Product",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=150, verbose_name="Name")),
                ("sku", models.CharField(help_text="Stock keeping unit, stored uppercase", max_length=50, unique=True, verbose_name="SKU")),
                ("brand", models.CharField(blank=True, max_length=80, verbose_name="Brand")),
                ("category", models.CharField(choices=[("hardware", "Hardware"), ("accessories", "Accessories"), ("networking", "Networking"), ("printing", "Printing")], max_length=20, verbose_name="Category")),
                ("description", models.TextField(blank=True, verbose_name="Description")),
                ("price", models.DecimalField(decimal_places=2, max_digits=12, validators=[django.core.validators.MinValueValidator(0)], verbose_name="Price")),
                ("currency", models.CharField(choices=CURRENCY_CHOICES, default="XAF", max_length=3, verbose_name="Currency")),
                ("stock", models.PositiveIntegerField(default=0, verbose_name="Stock")),
                ("availability", models.CharField(choices=[("in_stock", "In stock"), ("out_of_stock", "Out of stock"), ("pre_order", "Pre-order")], default="in_stock", max_length=20, verbose_name="Availability")),
                ("sales", models.PositiveIntegerField(default=0, verbose_name="Units sold")),
                ("is_active", models.BooleanField(default=True, verbose_name="Active")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Product",
                "verbose_name_plural": "Products",
                "ordering": ["name"],
                "indexes": [models.Index(fields=["category", "is_active"], name="product_category_active_idx")],
            },
        ),
        migrations.CreateModel(
            name="PrepaidCard",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(max_length=50, unique=True, validators=[django.core.validators.MinLengthValidator(6)], verbose_name="Code")),
                ("value", models.DecimalField(decimal_places=2, max_digits=12, validators=[django.core.validators.MinValueValidator(0)], verbose_name="Value")),
                ("currency", models.CharField(choices=CURRENCY_CHOICES, default="XAF", max_length=3, verbose_name="Currency")),
                ("status", models.CharField(choices=[("active", "Active"), ("used", "Used"), ("expired", "Expired"), ("disabled", "Disabled")], db_index=True, default="active", max_length=20, verbose_name="Status")),
                ("used_at", models.DateTimeField(blank=True, null=True, verbose_name="Used at")),
                ("expires_at", models.DateTimeField(blank=True, db_index=True, null=True, verbose_name="Expires at")),
                ("notes", models.TextField(blank=True, max_length=500, verbose_name="Notes")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="created_prepaid_cards", to=settings.AUTH_USER_MODEL, verbose_name="Created by")),
                ("used_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="used_prepaid_cards", to=settings.AUTH_USER_MODEL, verbose_name="Used by")),
            ],
            options={
                "verbose_name": "Prepaid card",
                "verbose_name_plural": "Prepaid cards",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="Enrollment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("status", models.CharField(choices=[("pending", "Pending"), ("enrolled", "Enrolled"), ("completed", "Completed"), ("cancelled", "Cancelled"), ("refunded", "Refunded")], default="pending", max_length=20, verbose_name="Status")),
                ("progress", models.PositiveSmallIntegerField(default=0, validators=[django.core.validators.MaxValueValidator(100)], verbose_name="Progress (%)")),
                ("enrolled_at", models.DateTimeField(blank=True, null=True, verbose_name="Enrolled at")),
                ("completed_at", models.DateTimeField(blank=True, null=True, verbose_name="Completed at")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("course", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="enrollments", to="commerce.course", verbose_name="Course")),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="enrollments", to=settings.AUTH_USER_MODEL, verbose_name="User")),
            ],
            options={
                "verbose_name": "Enrollment",
                "verbose_name_plural": "Enrollments",
                "ordering": ["-created_at"],
                "unique_together": {("user", "course")},
                "indexes": [
                    models.Index(fields=["user", "status"], name="enrollment_user_status_idx"),
                    models.Index(fields=["course", "status"], name="enrollment_course_status_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Order",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("reference", models.CharField(editable=False, max_length=20, unique=True, verbose_name="Reference")),
                ("customer_full_name", models.CharField(max_length=120, verbose_name="Full name")),
                ("customer_email", models.EmailField(max_length=254, verbose_name="Email")),
                ("customer_phone", models.CharField(max_length=30, verbose_name="Phone")),
                ("customer_address", models.CharField(max_length=200, verbose_name="Address")),
                ("customer_city", models.CharField(default="N'Djamena", max_length=100, verbose_name="City")),
                ("customer_notes", models.CharField(blank=True, max_length=300, verbose_name="Delivery notes")),
                ("subtotal", models.DecimalField(decimal_places=2, max_digits=12, validators=[django.core.validators.MinValueValidator(0)])),
                ("discount", models.DecimalField(decimal_places=2, default=0, max_digits=12, validators=[django.core.validators.MinValueValidator(0)])),
                ("total", models.DecimalField(decimal_places=2, max_digits=12, validators=[django.core.validators.MinValueValidator(0)])),
                ("currency", models.CharField(choices=CURRENCY_CHOICES, default="XAF", max_length=3)),
                ("status", models.CharField(choices=[("pending", "Pending"), ("processing", "Processing"), ("shipped", "Shipped"), ("completed", "Completed"), ("cancelled", "Cancelled")], db_index=True, default="pending", max_length=20, verbose_name="Status")),
                ("payment_method", models.CharField(choices=PAYMENT_METHOD_CHOICES, max_length=20, verbose_name="Payment method")),
                ("payment_provider", models.CharField(blank=True, max_length=30)),
                ("payment_status", models.CharField(choices=[("pending", "Pending"), ("paid", "Paid"), ("failed", "Failed")], default="pending", max_length=20, verbose_name="Payment status")),
                ("payment_transaction_id", models.CharField(blank=True, db_index=True, max_length=100)),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("notes", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("user", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="orders", to=settings.AUTH_USER_MODEL, verbose_name="User")),
            ],
            options={
                "verbose_name": "Order",
                "verbose_name_plural": "Orders",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["user", "status"], name="order_user_status_idx"),
                    models.Index(fields=["status", "created_at"], name="order_status_created_idx"),
                    models.Index(fields=["customer_email"], name="order_customer_email_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=150)),
                ("sku", models.CharField(max_length=50)),
                ("quantity", models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(10)])),
                ("unit_price", models.DecimalField(decimal_places=2, max_digits=12, validators=[django.core.validators.MinValueValidator(0)])),
                ("subtotal", models.DecimalField(decimal_places=2, max_digits=12, validators=[django.core.validators.MinValueValidator(0)])),
                ("order", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="items", to="commerce.order")),
                ("product", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="order_items", to="commerce.product")),
            ],
            options={
                "verbose_name": "Order item",
                "verbose_name_plural": "Order items",
                "ordering": ["id"],
            },
        ),
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("amount", models.DecimalField(decimal_places=2, max_digits=12, validators=[django.core.validators.MinValueValidator(Decimal("0.01"))], verbose_name="Amount")),
                ("currency", models.CharField(choices=CURRENCY_CHOICES, default="XAF", max_length=3, verbose_name="Currency")),
                ("status", models.CharField(choices=[("pending", "Pending"), ("processing", "Processing"), ("completed", "Completed"), ("failed", "Failed"), ("cancelled", "Cancelled"), ("refunded", "Refunded")], default="pending", max_length=20, verbose_name="Status")),
                ("payment_method", models.CharField(choices=PAYMENT_METHOD_CHOICES, max_length=20, verbose_name="Payment method")),
                ("payment_provider", models.CharField(choices=[("airtel_money", "Airtel Money"), ("moov_money", "Moov Money"), ("bank", "Bank"), ("prepaid_card", "Prepaid card")], max_length=20, verbose_name="Payment provider")),
                ("transaction_id", models.CharField(default=commerce.payments.models.generate_transaction_id, editable=False, max_length=64, unique=True, verbose_name="Transaction ID")),
                ("provider_transaction_id", models.CharField(blank=True, db_index=True, max_length=100, verbose_name="Provider transaction ID")),
                ("phone_number", models.CharField(blank=True, max_length=20, verbose_name="Phone number")),
                ("operator", models.CharField(blank=True, max_length=20, verbose_name="Operator")),
                ("failure_reason", models.CharField(blank=True, max_length=255, verbose_name="Failure reason")),
                ("paid_at", models.DateTimeField(blank=True, null=True, verbose_name="Paid at")),
                ("expires_at", models.DateTimeField(blank=True, null=True, verbose_name="Expires at")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("course", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="payments", to="commerce.course", verbose_name="Course")),
                ("enrollment", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="payments", to="commerce.enrollment", verbose_name="Enrollment")),
                ("order", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="payments", to="commerce.order", verbose_name="Order")),
                ("prepaid_card", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="payments", to="commerce.prepaidcard", verbose_name="Prepaid card")),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="payments", to=settings.AUTH_USER_MODEL, verbose_name="User")),
            ],
            options={
                "verbose_name": "Payment",
                "verbose_name_plural": "Payments",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["user", "status"], name="payment_user_status_idx"),
                    models.Index(fields=["status", "expires_at"], name="payment_status_expires_idx"),
                    models.Index(fields=["payment_method", "status"], name="payment_method_status_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="PaymentItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("item_type", models.CharField(choices=[("course", "Course"), ("product", "Product"), ("cart", "Cart (order)")], max_length=10)),
                ("name", models.CharField(max_length=200)),
                ("quantity", models.PositiveIntegerField(default=1, validators=[django.core.validators.MinValueValidator(1)])),
                ("unit_price", models.DecimalField(decimal_places=2, max_digits=12)),
                ("course", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="+", to="commerce.course")),
                ("order", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="+", to="commerce.order")),
                ("payment", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="items", to="commerce.payment")),
                ("product", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="+", to="commerce.product")),
            ],
            options={
                "verbose_name": "Payment item",
                "verbose_name_plural": "Payment items",
                "ordering": ["id"],
            },
        ),
    ]
