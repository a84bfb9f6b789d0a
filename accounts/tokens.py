"""
Email verification tokens.

Same machinery as Django's password reset tokens, with a separate salt so a
reset token can never verify an address (and vice versa). The hash includes
the `verified` preference, so a token stops working once it has been used.
"""

from django.contrib.auth.tokens import PasswordResetTokenGenerator


class EmailVerificationTokenGenerator(PasswordResetTokenGenerator):
    key_salt = "accounts.tokens.EmailVerificationTokenGenerator"

    def _make_hash_value(self, user, timestamp):
        return f"{user.pk}{user.email}{user.get_preference('verified')}{timestamp}"


email_verification_token = EmailVerificationTokenGenerator()
