"""
ComponentDB Quickstart Example

This example walks through the registry core:

1. Registering components (hierarchy and dependencies are inferred)
2. Versioning and reverting source
3. Blast-radius queries: what else does a change affect?
4. Single and multi-component code changes, with rollback
5. Tags and lifecycle hooks
"""

import asyncio

from componentdb import (
    CodeChangeRequest,
    ComponentRecord,
    ComponentRegistry,
    LifecycleHook,
    MultiComponentChangeRequest,
    RegistryConfig,
    RegistryEventType,
)


async def main():
    # ==========================================================================
    # Initialize the registry
    # ==========================================================================
    print("=" * 60)
    print("ComponentDB Quickstart")
    print("=" * 60)

    config = RegistryConfig.from_env()
    config.apply_logging()

    with ComponentRegistry(config=config) as registry:
        registry.subscribe_all(
            lambda event: print(f"  [event] {event.event_type.value} {event.component_id or event.component_ids}")
        )

        # ======================================================================
        # Register components
        # ======================================================================
        print("\n" + "-" * 40)
        print("Step 1: Registering components")
        print("-" * 40)

        registry.register(ComponentRecord(
            id="page", name="ProductPage", path=["page"],
            source_code="function ProductPage() { return <main/>; }",
        ))
        registry.register(ComponentRecord(
            id="card-1", name="ProductCard", path=["page", "card-1"],
            source_code="function ProductCard() { return <div>Shoes</div>; }",
        ))
        registry.register(ComponentRecord(
            id="card-2", name="ProductCard2", path=["page", "card-2"],
            source_code="function ProductCard2() { return <div>Socks</div>; }",
        ))
        registry.register(ComponentRecord(
            id="badge", name="CartBadge", path=["page", "badge"],
            declared_dependencies=["ProductCard"],
            source_code="function CartBadge() { return <span>0</span>; }",
        ))

        relationships = registry.get_component_relationships("card-1")
        print(f"card-1 parent: {relationships.parent_id}, siblings: {relationships.sibling_ids}")
        print(f"card-1 is depended on by: {relationships.depended_on_by}")

        # ======================================================================
        # Versions
        # ======================================================================
        print("\n" + "-" * 40)
        print("Step 2: Versioning")
        print("-" * 40)

        initial = registry.get_version_history("card-1")[0]
        registry.create_version("card-1", "function ProductCard() { return <div>Boots</div>; }", "Rename")
        registry.revert_to_version("card-1", initial.id)

        for version in registry.get_version_history("card-1"):
            print(f"  {version.timestamp:%H:%M:%S}  {version.description}")

        # ======================================================================
        # Blast radius
        # ======================================================================
        print("\n" + "-" * 40)
        print("Step 3: Affected components")
        print("-" * 40)

        registry.track_state_usage("card-1", "cart")
        registry.track_state_usage("card-2", "cart")
        print(f"Changing card-1 affects: {registry.get_affected_components(['card-1'])}")
        print(f"State in play for badge: {registry.get_related_state_keys('badge')}")

        # ======================================================================
        # Code changes
        # ======================================================================
        print("\n" + "-" * 40)
        print("Step 4: Code changes")
        print("-" * 40)

        result = await registry.execute_code_change(CodeChangeRequest(
            component_id="card-1",
            source_code="function ProductCard() { return <div><b>Shoes</b></div>; }",
            description="Bold title",
        ))
        print(f"Single change applied: {result.success}")

        failures = []
        registry.subscribe(RegistryEventType.CODE_CHANGE_FAILED, failures.append)

        batch = await registry.execute_multi_component_change(MultiComponentChangeRequest(
            component_ids=["card-1", "card-2", "badge"],
            changes={
                "card-1": "function ProductCard() { return <div>Shoes!</div>; }",
                "card-2": "function ProductCard2() { return <div>Socks!</div>; }",
                "badge": "function CartBadge() { fetch('https://tracker.example'); return null; }",
            },
            description="Exclaim everything",
        ))
        print(f"Batch state: {batch.state.value}, rolled back: {batch.rolled_back}")
        for component_id, item in batch.results.items():
            print(f"  {component_id}: {'ok' if item.success else item.error}")
        print(f"card-1 source after rollback: {registry.get_component('card-1').source_code}")

        # ======================================================================
        # Tags and lifecycle hooks
        # ======================================================================
        print("\n" + "-" * 40)
        print("Step 5: Tags and hooks")
        print("-" * 40)

        registry.add_component_tag("card-1", "product")
        registry.add_component_tag("card-2", "product")
        products = registry.find_components_by_tags(["product"])
        print(f"Product components: {[c.id for c in products]}")

        registry.register_lifecycle_hook(
            LifecycleHook.BEFORE_UNREGISTER,
            lambda component, data: component.id != "page",
        )
        print(f"Unregister page allowed: {registry.unregister('page')}")

    print("\n" + "=" * 60)
    print("Done")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
