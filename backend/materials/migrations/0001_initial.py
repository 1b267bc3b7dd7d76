import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Material',
            fields=[
                ('id', models.BigAutoField(primary_key=True, serialize=False)),
                ('name', models.TextField()),
                ('material_type', models.CharField(choices=[('FERTILIZER', 'Fertilizer'), ('PESTICIDE', 'Pesticide'), ('SEED', 'Seed'), ('OTHER', 'Other')], default='OTHER', max_length=16)),
                ('unit', models.CharField(max_length=32)),
                ('amount_per_package', models.DecimalField(blank=True, decimal_places=4, max_digits=12, null=True)),
                ('is_partition', models.BooleanField(default=False)),
                ('manufacturer', models.TextField(blank=True, null=True)),
                ('description', models.TextField(blank=True, null=True)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'materials',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='MaterialPrice',
            fields=[
                ('id', models.BigAutoField(primary_key=True, serialize=False)),
                ('price_per_package', models.DecimalField(decimal_places=2, max_digits=14)),
                ('valid_from', models.DateTimeField()),
                ('valid_to', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('material', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='prices', to='materials.material')),
            ],
            options={
                'db_table': 'material_prices',
                'ordering': ['material', 'valid_from'],
                'indexes': [models.Index(fields=['material', 'valid_from'], name='material_prices_mat_from_idx')],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('valid_to__isnull', True)), fields=('material',), name='material_prices_one_open_interval'),
                    models.CheckConstraint(condition=models.Q(('price_per_package__gt', 0)), name='material_prices_price_positive'),
                    models.CheckConstraint(condition=models.Q(('valid_to__isnull', True), ('valid_to__gt', models.F('valid_from')), _connector='OR'), name='material_prices_valid_range'),
                ],
            },
        ),
    ]
