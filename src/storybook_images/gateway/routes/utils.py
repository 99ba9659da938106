from fastapi import HTTPException, status


def resolve_target_user(
    auth_result: tuple[bool, str | None],
    explicit_user: str | None,
    *,
    missing_master_detail: str = "When using master key, userId is required",
) -> str:
    """Resolve a target user_id from auth context and optional explicit value."""
    is_master, resolved_user_id = auth_result

    if is_master:
        if not explicit_user:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=missing_master_detail,
            )
        return explicit_user

    if explicit_user and resolved_user_id and explicit_user != resolved_user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="userId does not match the authenticated user",
        )

    target_user_id = resolved_user_id or explicit_user
    if not target_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not resolved")
    return target_user_id
