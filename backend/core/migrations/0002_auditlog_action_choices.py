from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('core', '0001_initial'),
    ]

    operations = [
        migrations.AlterField(
            model_name='auditlog',
            name='action',
            field=models.CharField(choices=[('create', 'Create'), ('update', 'Update'), ('delete', 'Delete'), ('stock_adjust', 'Stock Adjustment'), ('roll_intake', 'Rolls Received (Purchase)'), ('production_allocate', 'Production Allocated'), ('production_complete', 'Production Completed'), ('production_quick_complete', 'Quick Production Entry'), ('production_delete', 'Production Batch Deleted'), ('return_to_production', 'Returned To Production'), ('bale_create', 'Bale Batch Created'), ('bale_update', 'Bale Item Updated'), ('bale_delete', 'Bale Deleted'), ('invoice_confirm', 'Invoice Confirmed'), ('invoice_cancel', 'Invoice Cancelled'), ('receipt_create', 'Receipt Created'), ('receipt_reverse', 'Receipt Reversed'), ('roll_update', 'Roll Corrected'), ('roll_delete', 'Roll Deleted'), ('payment_create', 'Supplier Payment Created'), ('payment_reverse', 'Supplier Payment Reversed'), ('sample_create', 'Sample Issued'), ('sample_update', 'Sample Updated'), ('sample_delete', 'Sample Deleted')], max_length=50),
        ),
    ]
