"""Status reports and result export."""
