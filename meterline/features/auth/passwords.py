"""Password hashing for the identity file (bcrypt)."""
import bcrypt


MIN_PASSWORD_LENGTH = 6


def hash_password(password: str) -> str:
    """Hash password with bcrypt."""
    return bcrypt.hashpw(str(password).encode(), bcrypt.gensalt()).decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Verify password against stored hash."""
    try:
        return bcrypt.checkpw(str(password).encode(), password_hash.encode())
    except ValueError:
        # Malformed stored hash
        return False
