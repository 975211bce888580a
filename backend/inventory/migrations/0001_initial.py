from decimal import Decimal

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('masters', '0001_initial'),
        ('purchasing', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='FinishedProductStock',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('stock_quantity', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('product', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='stock', to='masters.finishedproduct')),
            ],
            options={
                'db_table': 'finished_product_stock',
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('stock_quantity__gte', 0)), name='fg_stock_non_negative'),
                ],
            },
        ),
        migrations.CreateModel(
            name='RawMaterialRoll',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('roll_code', models.CharField(max_length=100, unique=True)),
                ('total_quantity', models.DecimalField(decimal_places=2, max_digits=12)),
                ('consumed_quantity', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('status', models.CharField(choices=[('in_stock', 'In Stock'), ('reserved', 'Reserved'), ('consumed', 'Consumed')], default='in_stock', max_length=20)),
                ('gross_weight', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('pipe_weight', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('gsm', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ('width', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ('shade', models.CharField(blank=True, max_length=100)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('purchase_bill', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='rolls', to='purchasing.purchasebill')),
                ('raw_material', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='rolls', to='masters.rawmaterial')),
            ],
            options={
                'db_table': 'raw_material_rolls',
                'ordering': ['created_at', 'id'],
                'indexes': [
                    models.Index(fields=['raw_material', 'status'], name='idx_roll_material_status'),
                    models.Index(fields=['created_at', 'id'], name='idx_roll_fifo'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('consumed_quantity__gte', 0), ('consumed_quantity__lte', models.F('total_quantity'))), name='roll_consumed_within_total'),
                ],
            },
        ),
        migrations.CreateModel(
            name='StockMovement',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('movement_type', models.CharField(choices=[('raw_in', 'Raw Material In'), ('raw_out', 'Raw Material Out'), ('fg_in', 'Finished Goods In'), ('fg_out', 'Finished Goods Out')], max_length=10)),
                ('item_type', models.CharField(choices=[('raw', 'Raw Material'), ('finished', 'Finished Product')], max_length=10)),
                ('quantity_in', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('quantity_out', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('balance_after', models.DecimalField(blank=True, decimal_places=2, help_text='Item balance right after this movement', max_digits=14, null=True)),
                ('reference_type', models.CharField(choices=[('purchase_bill', 'Purchase Bill'), ('production_batch', 'Production Batch'), ('production_return', 'Return To Production'), ('bale_batch', 'Bale Batch'), ('bale_item', 'Bale Item'), ('sales_invoice', 'Sales Invoice'), ('adjustment', 'Manual Adjustment')], max_length=30)),
                ('reference_id', models.PositiveBigIntegerField(blank=True, null=True)),
                ('reference_code', models.CharField(blank=True, max_length=100)),
                ('reason', models.TextField(blank=True)),
                ('movement_date', models.DateField(default=django.utils.timezone.localdate)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='stock_movements', to=settings.AUTH_USER_MODEL)),
                ('finished_product', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='movements', to='masters.finishedproduct')),
                ('raw_material', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='movements', to='masters.rawmaterial')),
                ('roll', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='movements', to='inventory.rawmaterialroll')),
            ],
            options={
                'db_table': 'stock_movements',
                'ordering': ['created_at', 'id'],
                'indexes': [
                    models.Index(fields=['finished_product', 'created_at'], name='idx_mov_product_created'),
                    models.Index(fields=['raw_material', 'created_at'], name='idx_mov_material_created'),
                    models.Index(fields=['reference_type', 'reference_id'], name='idx_mov_reference'),
                    models.Index(fields=['reference_code'], name='idx_mov_reference_code'),
                ],
            },
        ),
    ]
