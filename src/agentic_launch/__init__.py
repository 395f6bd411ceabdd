"""Launch containerized AI coding assistants with composed prompts on isolated work branches."""
