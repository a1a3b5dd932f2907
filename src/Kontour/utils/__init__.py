from .files import (
    delete_kubeconfig_file,
    get_kubeconfig_storage_dir,
    load_name_index,
    sanitize_filename,
    save_kubeconfig_file,
    save_name_index,
)

__all__ = [
    "delete_kubeconfig_file",
    "get_kubeconfig_storage_dir",
    "load_name_index",
    "sanitize_filename",
    "save_kubeconfig_file",
    "save_name_index",
]
