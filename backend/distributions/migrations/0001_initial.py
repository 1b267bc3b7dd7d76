import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('farms', '0001_initial'),
        ('materials', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='MaterialDistribution',
            fields=[
                ('id', models.BigAutoField(primary_key=True, serialize=False)),
                ('related_task_id', models.BigIntegerField(blank=True, null=True)),
                ('quantity_distributed', models.DecimalField(decimal_places=2, max_digits=12)),
                ('status', models.CharField(choices=[('SCHEDULED', 'Scheduled'), ('PARTIALLY_CONFIRMED', 'Partially confirmed'), ('COMPLETED', 'Completed'), ('REJECTED', 'Rejected')], default='SCHEDULED', max_length=24)),
                ('scheduled_distribution_date', models.DateTimeField()),
                ('distribution_deadline', models.DateTimeField()),
                ('actual_distribution_date', models.DateTimeField(blank=True, null=True)),
                ('supervisor_confirmation_deadline', models.DateTimeField()),
                ('farmer_confirmation_deadline', models.DateTimeField(blank=True, null=True)),
                ('supervisor_confirmed_by', models.BigIntegerField(blank=True, null=True)),
                ('supervisor_confirmed_at', models.DateTimeField(blank=True, null=True)),
                ('supervisor_notes', models.CharField(blank=True, max_length=500, null=True)),
                ('farmer_confirmed_at', models.DateTimeField(blank=True, null=True)),
                ('farmer_notes', models.CharField(blank=True, max_length=500, null=True)),
                ('rejection_reason', models.CharField(blank=True, max_length=500, null=True)),
                ('image_urls', models.JSONField(blank=True, default=list)),
                ('version', models.PositiveIntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('material', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='distributions', to='materials.material')),
                ('plot_cultivation', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='material_distributions', to='farms.plotcultivation')),
            ],
            options={
                'db_table': 'material_distributions',
                'ordering': ['scheduled_distribution_date', 'id'],
                'indexes': [models.Index(fields=['plot_cultivation', 'status'], name='mat_dist_pc_status_idx')],
            },
        ),
    ]
