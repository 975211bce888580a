from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('inventory', '0001_initial'),
    ]

    operations = [
        migrations.AddField(
            model_name='rawmaterialroll',
            name='is_reserved',
            field=models.BooleanField(default=False),
        ),
        migrations.AlterField(
            model_name='stockmovement',
            name='reference_type',
            field=models.CharField(choices=[('purchase_bill', 'Purchase Bill'), ('roll_adjustment', 'Roll Weight Correction'), ('roll_delete', 'Roll Deleted'), ('production_batch', 'Production Batch'), ('production_return', 'Return To Production'), ('bale_batch', 'Bale Batch'), ('bale_item', 'Bale Item'), ('sales_invoice', 'Sales Invoice'), ('sample', 'Product Sample'), ('adjustment', 'Manual Adjustment')], max_length=30),
        ),
    ]
