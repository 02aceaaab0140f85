"""
Helper script to generate a password hash for a users table row.

Use it to reset a forgotten admin password directly in the database;
regular staff accounts are created from the User Management page.

Usage:
    python -m utils.generate_password_hash
"""
import getpass

from core.simple_auth import hash_password

if __name__ == "__main__":
    print("=" * 60)
    print("Password Hash Generator")
    print("=" * 60)

    username = input("Username (email): ").strip()
    password = getpass.getpass("Enter password to hash: ")

    hashed = hash_password(password)
    print("\n✅ Password hash generated:")
    print(f"\n{hashed}")
    print("\n\U0001F4DD To reset the password, run:")
    print(f"UPDATE users SET password_hash = '{hashed}' WHERE LOWER(username) = LOWER('{username}');")
    print("=" * 60)
