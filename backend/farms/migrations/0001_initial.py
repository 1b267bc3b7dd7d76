import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Group',
            fields=[
                ('id', models.BigAutoField(primary_key=True, serialize=False)),
                ('name', models.TextField()),
                ('supervisor_id', models.BigIntegerField(blank=True, db_index=True, null=True)),
                ('status', models.CharField(choices=[('ACTIVE', 'Active'), ('INACTIVE', 'Inactive')], default='ACTIVE', max_length=16)),
                ('total_area_ha', models.DecimalField(blank=True, decimal_places=4, max_digits=12, null=True)),
            ],
            options={
                'db_table': 'farm_groups',
            },
        ),
        migrations.CreateModel(
            name='Plot',
            fields=[
                ('id', models.BigAutoField(primary_key=True, serialize=False)),
                ('farmer_id', models.BigIntegerField(db_index=True)),
                ('area_ha', models.DecimalField(decimal_places=4, max_digits=12)),
                ('sheet_number', models.IntegerField(blank=True, null=True)),
                ('parcel_number', models.IntegerField(blank=True, null=True)),
                ('group', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='plots', to='farms.group')),
            ],
            options={
                'db_table': 'plots',
            },
        ),
        migrations.CreateModel(
            name='PlotCultivation',
            fields=[
                ('id', models.BigAutoField(primary_key=True, serialize=False)),
                ('season', models.CharField(max_length=64)),
                ('area_ha', models.DecimalField(blank=True, decimal_places=4, max_digits=12, null=True)),
                ('plot', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='cultivations', to='farms.plot')),
            ],
            options={
                'db_table': 'plot_cultivations',
            },
        ),
    ]
