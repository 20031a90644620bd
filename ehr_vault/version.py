"""EHR Vault Meta information.
   Field-level encryption at rest with role-gated access for health records.
"""
__title__ = 'ehr_vault'
__description__ = (
   'Field-level encryption at rest with role-gated access '
   'for electronic health records.'
)
__version__ = '0.1.0'
__copyright__ = 'Copyright (c) 2026 EHR Vault Authors'
__author__ = 'EHR Vault Authors'
__license__ = 'Apache-2.0'
