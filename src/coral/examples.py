"""
Example package builder for demos and tests.

Builds a small design system with three components:
    Button      variant axes, state styles, an optional icon slot with fallback
    IconButton  wraps Button, forwarding its icon slot and click event
    Card        uses both, with a conditional action and a default body slot
"""
from coral.model import (
    ComponentDef,
    ComponentRef,
    CompoundVariantStyle,
    ConditionalStyle,
    EnumType,
    EventDef,
    FlatStateStyles,
    Node,
    Package,
    PropDef,
    SlotDef,
    VariantAxis,
    VariantStateStyles,
)
from coral.references import EventRef, HandlerKind, InlineHandler, PropRef, SlotForward, TokenRef


def build_example_tokens() -> dict:
    return {
        "color": {
            "primary": {"$value": {"$contexts": {"light": "#0066ff", "dark": "#3385ff"}, "$default": "light"}},
            "secondary": {"$value": "#4a4a4a"},
            "onPrimary": {"$value": "#ffffff"},
            "text": {"$contexts": {"light": "#111111", "dark": "#f5f5f5"}, "$default": "light"},
            "focus": {"$value": "{color.primary}"},
        },
        "space": {
            "$description": "Spacing scale",
            "sm": {"$value": "4px"},
            "md": {"$value": "8px"},
            "lg": {"$value": "16px"},
        },
        "radius": {"md": {"$value": "6px"}},
    }


def build_button() -> ComponentDef:
    intents = ("primary", "secondary", "tertiary")
    sizes = ("sm", "md", "lg")

    root = Node(
        name="Button",
        element_type="button",
        element_attributes={"disabled": PropRef("disabled"), "onClick": EventRef("onClick")},
        styles={
            "display": "inline-flex",
            "gap": TokenRef("space.sm"),
            "borderRadius": TokenRef("radius.md"),
            "color": TokenRef("color.onPrimary"),
            "backgroundColor": TokenRef("color.primary"),
        },
        variant_styles={
            "intent": {
                "secondary": {"backgroundColor": TokenRef("color.secondary")},
                "tertiary": {"backgroundColor": "transparent", "color": TokenRef("color.text")},
            },
            "size": {
                "sm": {"padding": TokenRef("space.sm")},
                "md": {"padding": TokenRef("space.md")},
                "lg": {"padding": TokenRef("space.lg")},
            },
        },
        compound_variant_styles=[
            CompoundVariantStyle(conditions={"intent": "primary", "size": "lg"}, styles={"fontWeight": 700}),
        ],
        state_styles={
            "hover": VariantStateStyles(axes={
                "intent": {
                    "primary": {"backgroundColor": "#0052cc"},
                    "secondary": {"backgroundColor": "#333333"},
                },
            }),
            "focus": FlatStateStyles(styles={"outlineColor": TokenRef("color.focus")}),
        },
        conditional_styles=[
            ConditionalStyle(condition=PropRef("disabled"), styles={"opacity": 0.5, "cursor": "not-allowed"}),
        ],
        children=[
            Node(
                name="Icon",
                element_type="span",
                slot_target="icon",
                slot_fallback=[Node(name="IconPlaceholder", element_type="span", text_content="•")],
            ),
            Node(name="Label", element_type="span", text_content=PropRef("label")),
        ],
    )

    return ComponentDef(
        name="Button",
        root=root,
        axes=[
            VariantAxis(name="intent", values=list(intents), default="primary"),
            VariantAxis(name="size", values=list(sizes), default="md"),
        ],
        props={
            "label": PropDef(type="string", required=True, description="Button text"),
            "intent": PropDef(type=EnumType(intents), default="primary"),
            "size": PropDef(type=EnumType(sizes), default="md"),
            "disabled": PropDef(type="boolean", default=False),
        },
        slots=[SlotDef(name="icon", multiple=False)],
        events={"onClick": EventDef(description="Fired when the button is pressed")},
        description="Primary action button",
    )


def build_icon_button() -> ComponentDef:
    root = Node(
        name="Button",
        component=ComponentRef("./button/button.coral.json"),
        prop_bindings={"label": PropRef("ariaLabel"), "intent": PropRef("intent")},
        variant_overrides={"size": "sm"},
        slot_bindings={"icon": SlotForward("icon")},
        event_bindings={"onClick": EventRef("onPress")},
        style_overrides={"borderRadius": "50%"},
    )
    return ComponentDef(
        name="IconButton",
        root=root,
        props={
            "ariaLabel": PropDef(type="string", required=True),
            "intent": PropDef(type=EnumType(("primary", "secondary", "tertiary")), default="secondary"),
        },
        slots=[SlotDef(name="icon", required=True, multiple=False)],
        events={"onPress": EventDef()},
    )


def build_card() -> ComponentDef:
    root = Node(
        name="Card",
        element_type="section",
        styles={"padding": TokenRef("space.lg"), "color": TokenRef("color.text")},
        children=[
            Node(name="Title", element_type="h2", text_content=PropRef("title")),
            Node(
                name="Body",
                slot_target="default",
                slot_fallback=[Node(name="EmptyBody", element_type="p", text_content="Nothing here yet")],
            ),
            Node(
                name="Action",
                component=ComponentRef("Button"),
                conditional=PropRef("showAction"),
                prop_bindings={"label": PropRef("actionLabel")},
                variant_overrides={"intent": "primary", "size": "lg"},
                event_bindings={"onClick": InlineHandler(HandlerKind.PREVENT_DEFAULT)},
            ),
            Node(
                name="More",
                component=ComponentRef("./icon-button/icon-button.coral.json"),
                prop_bindings={"ariaLabel": "More options"},
                slot_bindings={"icon": Node(name="Dots", element_type="span", text_content="⋯")},
            ),
        ],
    )
    return ComponentDef(
        name="Card",
        root=root,
        props={
            "title": PropDef(type="string", required=True),
            "actionLabel": PropDef(type="string", default="Open"),
            "showAction": PropDef(type="boolean", default=True),
        },
        slots=[SlotDef(name="default")],
    )


def build_example_package() -> Package:
    components = [build_button(), build_icon_button(), build_card()]
    return Package(
        name="@acme/design-system",
        version="1.0.0",
        components={component.name: component for component in components},
        tokens=build_example_tokens(),
        description="Example package",
    )
