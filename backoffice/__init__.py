"""Back-office API with role-based access control."""
