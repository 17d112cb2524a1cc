from ..registry import GLOBAL_MAX_PAGE_SIZE, RegistryEntry


def _assert_pagination(entity: str, page: int | None, page_size: int | None) -> None:
    if page is not None and page < 1:
        raise ValueError(f"Page must be positive for {entity}: {page}")
    if page_size is not None and page_size < 1:
        raise ValueError(f"Page size must be positive for {entity}: {page_size}")


def _cap_page_size(entity: str, page_size: int | None, reg: RegistryEntry) -> int | None:
    if page_size is None:
        return None
    cap = int(reg.get("maxPageSize", GLOBAL_MAX_PAGE_SIZE))
    return min(page_size, cap)
