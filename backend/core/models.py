from django.db import models


class SystemSetting(models.Model):
    id = models.BigAutoField(primary_key=True)
    setting_key = models.CharField(max_length=128, unique=True)
    setting_value = models.TextField()
    description = models.TextField(blank=True, null=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.setting_key}={self.setting_value}"

    class Meta:
        db_table = 'system_settings'
        ordering = ['setting_key']
