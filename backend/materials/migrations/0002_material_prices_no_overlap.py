from django.db import migrations

DDL = r"""
CREATE EXTENSION IF NOT EXISTS btree_gist;

DO $$
BEGIN
    IF NOT EXISTS (
        SELECT 1
        FROM pg_constraint
        WHERE conname='material_prices_no_overlap'
    ) THEN
        ALTER TABLE material_prices ADD CONSTRAINT material_prices_no_overlap EXCLUDE USING gist (
            material_id WITH =,
            tstzrange(valid_from, valid_to, '[)') WITH &&
        );
    END IF;
END
$$;
"""

REVERSE = "ALTER TABLE material_prices DROP CONSTRAINT IF EXISTS material_prices_no_overlap;"


def add_exclusion(apps, schema_editor):
    # Range exclusion constraints only exist on PostgreSQL
    if schema_editor.connection.vendor != "postgresql":
        return
    schema_editor.execute(DDL)


def drop_exclusion(apps, schema_editor):
    if schema_editor.connection.vendor != "postgresql":
        return
    schema_editor.execute(REVERSE)


class Migration(migrations.Migration):

    dependencies = [
        ('materials', '0001_initial'),
    ]

    operations = [
        migrations.RunPython(add_exclusion, drop_exclusion),
    ]
