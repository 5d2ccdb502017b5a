class FrozenNodeStore:
    def record(self, owner: str, node: str) -> None:
        """
        Remember that node rejected a pod of owner. Adding the same pair twice is a no-op.
        """
        raise NotImplementedError

    def freeze_nodes(self, owner: str) -> set[str]:
        """
        Return the nodes currently frozen for owner; empty set if none are known.
        """
        raise NotImplementedError
