from vm_deploy.cli import main

raise SystemExit(main())
