"""
Signal receivers keeping the cached collector in sync with its sources.
"""

import logging

from django.core.signals import setting_changed
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from .collector import invalidate_message_rules, reset_collector
from .models import MessageRule

logger = logging.getLogger(__name__)


@receiver(post_save, sender=MessageRule, dispatch_uid="collectlogs_rule_saved")
@receiver(post_delete, sender=MessageRule, dispatch_uid="collectlogs_rule_deleted")
def message_rules_changed(sender, instance, **kwargs):
    logger.debug("Message rule %s changed; invalidating rule cache", instance.pk)
    invalidate_message_rules()


@receiver(setting_changed, dispatch_uid="collectlogs_setting_changed")
def collectlogs_setting_changed(sender, setting, **kwargs):
    if setting in ("COLLECTLOGS", "BASE_DIR"):
        reset_collector()
