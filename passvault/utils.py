import os
import stat
import datetime
import logging
from typing import Optional

from . import config

logger = logging.getLogger(__name__)

if os.name == "nt":
    try:
        import ntsecuritycon
        import win32api
        import win32security
    except ImportError:
        win32security = None
        logger.warning("pywin32 is not installed; the database will keep its inherited Windows ACL.")
else:
    win32security = None


def _restrict_windows_acl(filepath: str) -> bool:
    # Replace the inherited ACL with one entry for the current user
    if win32security is None:
        return False
    try:
        user_sid, _, _ = win32security.LookupAccountName(None, win32api.GetUserName())
        dacl = win32security.ACL()
        dacl.AddAccessAllowedAce(
            win32security.ACL_REVISION,
            ntsecuritycon.FILE_GENERIC_READ | ntsecuritycon.FILE_GENERIC_WRITE,
            user_sid,
        )
        descriptor = win32security.SECURITY_DESCRIPTOR()
        descriptor.SetSecurityDescriptorDacl(1, dacl, 0)
        win32security.SetFileSecurity(
            filepath,
            win32security.DACL_SECURITY_INFORMATION | win32security.PROTECTED_DACL_SECURITY_INFORMATION,
            descriptor,
        )
    except win32api.error as e:
        logger.error(f"Failed to restrict Windows ACL of {filepath}: {e}")
        return False
    return True


def set_owner_only_permissions(filepath: str) -> bool:
    """
    Make a file readable and writable by its owner only.

    Uses chmod 600 on POSIX and a protected single-user ACL on Windows.

    Returns:
        True on success, False if the permissions could not be changed
    """
    if os.name == "nt":
        return _restrict_windows_acl(filepath)
    try:
        os.chmod(filepath, stat.S_IRUSR | stat.S_IWUSR)  # 600
    except OSError as e:
        logger.error(f"Failed to chmod {filepath}: {e}")
        return False
    return True


def get_audit_log_path(config_dir: Optional[str] = None) -> str:
    log_dir = os.path.join(config_dir or config.get_config_dir(), config.LOG_DIR_NAME)
    return os.path.join(log_dir, config.AUDIT_LOG_FILE)


def log_action(action: str, details: str, config_dir: Optional[str] = None) -> None:
    """Append a security-relevant action to the audit log."""
    log_file = get_audit_log_path(config_dir)
    os.makedirs(os.path.dirname(log_file), exist_ok=True)
    timestamp = datetime.datetime.now().isoformat()

    with open(log_file, 'a', encoding='utf-8') as f:
        f.write(f"{timestamp} | {action} | {details}\n")
